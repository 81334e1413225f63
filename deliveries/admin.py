"""
Django admin configuration for deliveries app.
"""
from django.contrib import admin
from deliveries.models import DeliveryTask, Partner, UsageRecord


class UsageRecordInline(admin.TabularInline):
    """Inline display of usage records for a delivery."""
    model = UsageRecord
    extra = 0
    readonly_fields = ('endpoint', 'method', 'status_code', 'response_time_ms', 'created_at')
    can_delete = False


@admin.register(Partner)
class PartnerAdmin(admin.ModelAdmin):
    """Admin interface for Partner model."""

    list_display = ('business_name', 'callback_url', 'contact_email', 'is_active', 'updated_at')
    list_filter = ('is_active',)
    search_fields = ('business_name', 'contact_email', 'callback_url')
    readonly_fields = ('id', 'created_at', 'updated_at')


@admin.register(DeliveryTask)
class DeliveryTaskAdmin(admin.ModelAdmin):
    """Admin interface for DeliveryTask model."""

    list_display = ('id', 'partner', 'status', 'attempts', 'max_attempts', 'next_retry_at',
                    'last_response_status', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('id', 'partner__business_name', 'last_error')
    readonly_fields = ('id', 'partner', 'payload', 'status', 'attempts', 'max_attempts',
                       'next_retry_at', 'last_error', 'last_response_status', 'last_response_body',
                       'last_response_time_ms', 'claim_token', 'locked_until', 'escalated_at',
                       'target_url', 'replay_of',
                       'created_at', 'last_attempt_at', 'completed_at', 'updated_at')

    fieldsets = (
        ('Status', {
            'fields': ('id', 'partner', 'status', 'attempts', 'max_attempts', 'next_retry_at')
        }),
        ('Last Attempt', {
            'fields': ('last_attempt_at', 'last_response_status', 'last_response_time_ms',
                       'last_error', 'last_response_body')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'completed_at', 'escalated_at', 'updated_at')
        }),
        ('Payload', {
            'fields': ('payload', 'target_url', 'replay_of'),
            'classes': ('collapse',)
        }),
        ('Claim', {
            'fields': ('claim_token', 'locked_until'),
            'classes': ('collapse',)
        }),
    )

    inlines = [UsageRecordInline]

    def has_add_permission(self, request):
        """Deliveries are created through enqueue only."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Disable delivery deletion through admin."""
        return False


@admin.register(UsageRecord)
class UsageRecordAdmin(admin.ModelAdmin):
    """Admin interface for UsageRecord model."""

    list_display = ('id', 'partner', 'endpoint', 'method', 'status_code', 'response_time_ms', 'created_at')
    list_filter = ('status_code', 'created_at')
    search_fields = ('partner__business_name', 'endpoint')
    readonly_fields = ('partner', 'delivery', 'endpoint', 'method', 'status_code',
                       'response_time_ms', 'created_at')

    def has_add_permission(self, request):
        """Usage records are append-only."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Disable usage record deletion through admin."""
        return False
