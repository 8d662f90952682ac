from django.contrib import admin

from properties.models import Property


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ("title", "location", "price", "agent", "created_at")
    list_filter = ("created_at",)
    search_fields = ("title", "location", "agent__email")
    raw_id_fields = ("agent",)
    readonly_fields = ("created_at", "updated_at")
