"""
Property catalog model.

Listings are managed elsewhere; the chat core only needs to know that a
property exists and how to summarize it in a conversation list.
"""

from django.conf import settings
from django.db import models

from core.models import BaseModel


class Property(BaseModel):
    """
    A real-estate listing.

    Fields:
        title: Listing headline, used in conversation titles
        location: Free-form location text
        price: Asking price
        agent: Listing agent (nullable for unassigned listings)
        image_url: Primary image shown in chat summaries
    """

    title = models.CharField(max_length=200)
    location = models.CharField(max_length=255, blank=True)
    price = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="listed_properties",
    )
    image_url = models.URLField(max_length=500, blank=True)

    class Meta:
        db_table = "properties_property"
        verbose_name_plural = "properties"
        ordering = ["-created_at"]

    def __str__(self):
        return self.title
