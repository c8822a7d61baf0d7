"""
Transactional e-mail outbox.

Order code never talks to an SMTP server. It inserts a MailMessage row and
returns; the `send_queued_mail` management command (or any external
worker reading this table) performs delivery and records the outcome.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class MailMessage(models.Model):
    class DeliveryState(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PROCESSING = "PROCESSING", _("Processing")
        SUCCESS = "SUCCESS", _("Success")
        ERROR = "ERROR", _("Error")

    to = models.JSONField(help_text=_("List of recipient addresses"))
    subject = models.CharField(max_length=255)
    html = models.TextField()
    text = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    state = models.CharField(
        max_length=20,
        choices=DeliveryState.choices,
        default=DeliveryState.PENDING,
        db_index=True,
    )
    error = models.TextField(blank=True)
    attempts = models.PositiveIntegerField(default=0)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.subject} -> {', '.join(self.to)} ({self.state})"
