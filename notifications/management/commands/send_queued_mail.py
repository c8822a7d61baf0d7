"""
Management command to deliver queued e-mail from the outbox.

Usage:
    python manage.py send_queued_mail
    python manage.py send_queued_mail --limit 20

Run it from cron or a process supervisor. Each PENDING message is claimed,
sent through Django's configured e-mail backend and marked SUCCESS or ERROR.
"""

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from notifications.models import MailMessage

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Deliver pending messages from the e-mail outbox"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=50,
            help="Maximum number of messages to send (default: 50)",
        )

    def _claim(self, limit):
        with transaction.atomic():
            ids = list(
                MailMessage.objects.select_for_update()
                .filter(state=MailMessage.DeliveryState.PENDING)
                .values_list("pk", flat=True)[:limit]
            )
            MailMessage.objects.filter(pk__in=ids).update(state=MailMessage.DeliveryState.PROCESSING)
        return MailMessage.objects.filter(pk__in=ids)

    def _deliver(self, message):
        email = EmailMultiAlternatives(
            subject=message.subject,
            body=message.text or "",
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=message.to,
        )
        email.attach_alternative(message.html, "text/html")
        email.send(fail_silently=False)

    def handle(self, *args, **options):
        sent = failed = 0
        for message in self._claim(options["limit"]):
            message.attempts += 1
            try:
                self._deliver(message)
            except Exception as e:
                logger.error(f"Failed to deliver email {message.pk}: {e}")
                message.state = MailMessage.DeliveryState.ERROR
                message.error = str(e)
                failed += 1
            else:
                message.state = MailMessage.DeliveryState.SUCCESS
                message.error = ""
                message.delivered_at = timezone.now()
                sent += 1
            message.save(update_fields=["state", "error", "attempts", "delivered_at"])

        style = self.style.SUCCESS if not failed else self.style.WARNING
        self.stdout.write(style(f"Sent {sent} message(s), {failed} failed"))
