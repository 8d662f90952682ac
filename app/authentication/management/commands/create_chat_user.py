"""
Create (or report) a chat account.

Usage:
    python manage.py create_chat_user agent@example.com --role agent \
        --first-name John --last-name Doe --password 'Agent@123'

Existing accounts are left untouched; the command reports them and exits 0.
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from authentication.models import User, UserRole

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Create a user or agent account for chat"

    def add_arguments(self, parser):
        parser.add_argument("email")
        parser.add_argument(
            "--role",
            choices=[choice.value for choice in UserRole],
            default=UserRole.USER,
        )
        parser.add_argument("--first-name", default="")
        parser.add_argument("--last-name", default="")
        parser.add_argument(
            "--password",
            default=None,
            help="Leave empty to create an account that cannot log in yet",
        )

    def handle(self, *args, **options):
        email = User.objects.normalize_email(options["email"])
        if not email or "@" not in email:
            raise CommandError(f"Invalid email address: {options['email']!r}")

        existing = User.objects.filter(email__iexact=email).first()
        if existing:
            self.stdout.write(
                self.style.WARNING(
                    f"User already exists: {existing.email} "
                    f"(id={existing.id}, role={existing.role})"
                )
            )
            return

        user = User.objects.create_user(
            email=email,
            password=options["password"],
            first_name=options["first_name"],
            last_name=options["last_name"],
            role=options["role"],
        )
        logger.info(f"Created {user.role} account {user.id} via management command")
        self.stdout.write(
            self.style.SUCCESS(f"Created {user.role} {user.email} (id={user.id})")
        )
