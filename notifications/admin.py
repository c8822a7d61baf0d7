from django.contrib import admin

from .models import MailMessage


@admin.register(MailMessage)
class MailMessageAdmin(admin.ModelAdmin):
    """Admin interface for the e-mail outbox."""
    list_display = ["subject", "state", "attempts", "created_at", "delivered_at"]
    list_filter = ["state", "created_at"]
    search_fields = ["subject", "to"]
    readonly_fields = ["created_at", "delivered_at", "attempts", "error"]
    date_hierarchy = "created_at"

    actions = ["requeue"]

    def requeue(self, request, queryset):
        """Put failed messages back into the outbox."""
        queryset.filter(state=MailMessage.DeliveryState.ERROR).update(
            state=MailMessage.DeliveryState.PENDING, error=""
        )
    requeue.short_description = "Requeue selected failed messages"
