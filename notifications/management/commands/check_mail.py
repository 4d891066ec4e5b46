"""
Check that the configured mail transport is reachable.
"""
from django.core.management.base import BaseCommand, CommandError

from notifications.dispatch import get_sender


class Command(BaseCommand):
    help = "Open a connection to the configured mail server and report whether it is usable"

    def handle(self, *args, **options):
        sender = get_sender()
        if not sender.configured:
            raise CommandError(f"Email delivery is not configured: {sender.configuration_error}")
        if not sender.verify():
            raise CommandError("Mail transport is unreachable; see the log for details.")
        self.stdout.write(self.style.SUCCESS("Mail transport is ready."))
