"""
Data models for Webhook Gateway Service.
"""
import uuid

from django.db import models
from django.db.models import F, Q


class Partner(models.Model):
    """
    A business partner that receives verification outcomes by webhook.
    Read-only from the delivery worker's point of view.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business_name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True, default='')
    callback_url = models.URLField(max_length=2000, blank=True, default='')
    api_key = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['business_name']

    def __str__(self):
        return self.business_name


class DeliveryTaskQuerySet(models.QuerySet):

    def due(self, now):
        """Rows a worker may claim at ``now``."""
        return self.filter(
            status__in=DeliveryTask.ACTIVE_STATUSES,
            next_retry_at__lte=now,
            attempts__lt=F('max_attempts'),
        ).filter(
            Q(locked_until__isnull=True) | Q(locked_until__lte=now)
        )

    def exhausted(self):
        return self.filter(
            status=DeliveryTask.Status.FAILED,
            attempts__gte=F('max_attempts'),
        )


class DeliveryTask(models.Model):
    """
    One queued webhook notification and its retry history.
    Rows are never deleted; they are the audit trail of deliveries.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        RETRYING = 'retrying', 'Retrying'
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'

    ACTIVE_STATUSES = (Status.PENDING, Status.RETRYING)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    partner = models.ForeignKey(
        Partner,
        on_delete=models.PROTECT,
        related_name='deliveries'
    )
    # Canonical JSON, serialized once at enqueue time
    payload = models.TextField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=5)
    next_retry_at = models.DateTimeField(null=True, blank=True)

    last_error = models.TextField(null=True, blank=True)
    last_response_status = models.PositiveIntegerField(null=True, blank=True)
    last_response_body = models.TextField(null=True, blank=True)
    last_response_time_ms = models.PositiveIntegerField(null=True, blank=True)

    claim_token = models.UUIDField(null=True, blank=True)
    locked_until = models.DateTimeField(null=True, blank=True)
    escalated_at = models.DateTimeField(null=True, blank=True)

    # Set on manual replays; empty means the partner's callback URL
    target_url = models.URLField(max_length=2000, blank=True, default='')
    replay_of = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        related_name='replays',
        null=True,
        blank=True
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DeliveryTaskQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'next_retry_at'], name='deliveries__status_7c1e2a_idx'),
        ]

    def __str__(self):
        return f"Delivery {self.id} - {self.status} ({self.attempts}/{self.max_attempts})"

    @property
    def is_exhausted(self):
        return self.status == self.Status.FAILED and self.attempts >= self.max_attempts

    @property
    def is_terminal(self):
        return self.status == self.Status.SUCCESS or self.is_exhausted


class UsageRecord(models.Model):
    """
    Append-only usage entry written for every successful delivery.
    Feeds partner-facing analytics and billing.
    """

    partner = models.ForeignKey(
        Partner,
        on_delete=models.PROTECT,
        related_name='usage_records'
    )
    delivery = models.ForeignKey(
        DeliveryTask,
        on_delete=models.PROTECT,
        related_name='usage_records',
        null=True,
        blank=True
    )
    endpoint = models.TextField()
    method = models.CharField(max_length=10, default='POST')
    status_code = models.PositiveIntegerField()
    response_time_ms = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Usage {self.id} - {self.partner_id} {self.status_code}"
