from django.contrib import admin, messages

from .models import Quote, QuoteItem
from .services import resend_notification


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0
    fields = ["position", "product", "quantity"]
    readonly_fields = fields
    can_delete = False


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "email", "status", "email_status", "created_at"]
    list_filter = ["status", "email_status"]
    search_fields = ["name", "email", "phone"]
    date_hierarchy = "created_at"
    inlines = [QuoteItemInline]
    readonly_fields = ["id", "status", "email_status", "email_error", "created_at", "updated_at"]
    actions = ["resend_notifications"]

    fieldsets = (
        (None, {"fields": ("id", "name", "email", "phone", "project_details")}),
        (
            "Workflow",
            {
                "fields": ("status", "admin_notes"),
                "description": "Status changes go through the API so the customer is emailed.",
            },
        ),
        ("Notification", {"fields": ("email_status", "email_error")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.action(description="Resend notification email")
    def resend_notifications(self, request, queryset):
        for quote in queryset:
            resend_notification(quote.pk)
        self.message_user(
            request,
            f"Queued notifications for {queryset.count()} quote(s).",
            messages.SUCCESS,
        )
