"""
Queue store operations for webhook deliveries.

The DeliveryTask table is the single source of truth. Every write after a
claim is a conditional UPDATE keyed on the claim token, so a worker that
lost its claim can never overwrite another worker's result.
"""
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional

from django.conf import settings
from django.db import connection, transaction
from django.utils import timezone

from deliveries.models import DeliveryTask
from deliveries.services.backoff import next_retry_time
from deliveries.services.signing import canonical_json

logger = logging.getLogger(__name__)


@dataclass
class DeliveryOutcome:
    """Result of one delivery attempt."""

    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_body: Optional[str] = None
    response_time_ms: Optional[int] = None


def enqueue(partner_id, payload: Any, max_attempts: Optional[int] = None) -> DeliveryTask:
    """
    Queue a webhook notification for a partner.

    The payload is serialized once here; every attempt sends these bytes.

    Args:
        partner_id: Receiving partner
        payload: JSON-serializable event body
        max_attempts: Attempt ceiling (defaults to WEBHOOK_DEFAULT_MAX_ATTEMPTS)

    Returns:
        The new DeliveryTask, status pending and due immediately

    Raises:
        ValueError: If max_attempts < 1 or the payload is not JSON-serializable
    """
    if max_attempts is None:
        max_attempts = getattr(settings, 'WEBHOOK_DEFAULT_MAX_ATTEMPTS', 5)
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    try:
        body = canonical_json(payload)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Payload is not JSON-serializable: {e}") from e

    task = DeliveryTask.objects.create(
        partner_id=partner_id,
        payload=body,
        status=DeliveryTask.Status.PENDING,
        attempts=0,
        max_attempts=max_attempts,
        next_retry_at=timezone.now(),
    )
    logger.info(f"Delivery {task.id} enqueued for partner {partner_id} (max {max_attempts} attempts)")
    return task


def enqueue_replay(
    original: DeliveryTask,
    target_url: Optional[str] = None,
    payload: Any = None,
) -> DeliveryTask:
    """
    Queue a fresh delivery of an existing one.

    The stored body is re-sent byte-for-byte unless a replacement payload is
    given. The new task links back to the original through ``replay_of``,
    which makes the original's replays its replay history.

    Args:
        original: Delivery to replay (any status)
        target_url: Send to this URL instead of the partner's callback URL
        payload: Replacement JSON body

    Raises:
        ValueError: If the replacement payload is not JSON-serializable
    """
    body = original.payload
    if payload is not None:
        try:
            body = canonical_json(payload)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Payload is not JSON-serializable: {e}") from e

    task = DeliveryTask.objects.create(
        partner_id=original.partner_id,
        payload=body,
        status=DeliveryTask.Status.PENDING,
        attempts=0,
        max_attempts=original.max_attempts,
        next_retry_at=timezone.now(),
        replay_of=original,
        target_url=target_url or '',
    )
    logger.info(
        f"Delivery {task.id} enqueued as replay of {original.id}"
        f"{f' to {target_url}' if target_url else ''}"
    )
    return task


def attempt_lease_seconds() -> int:
    """Lease held while a single attempt is in flight."""
    configured = getattr(settings, 'WEBHOOK_CLAIM_LEASE_SECONDS', 120)
    timeout = getattr(settings, 'WEBHOOK_TIMEOUT_SECONDS', 30.0)
    return max(configured, math.ceil(timeout) * 2)


def batch_lease_seconds(batch_size: int) -> int:
    """
    Lease long enough for the last task of a batch to be reached.

    A batch runs in ceil(batch_size / concurrency) rounds of at most one
    request timeout each.
    """
    concurrency = max(getattr(settings, 'WEBHOOK_WORKER_CONCURRENCY', 1), 1)
    timeout = getattr(settings, 'WEBHOOK_TIMEOUT_SECONDS', 30.0)
    rounds = math.ceil(batch_size / concurrency)
    return math.ceil(rounds * timeout) + attempt_lease_seconds()


def claim_due(limit: Optional[int] = None, now: Optional[datetime] = None) -> List[DeliveryTask]:
    """
    Atomically claim up to ``limit`` due deliveries, oldest first.

    Claimed rows are marked retrying, stamped with a fresh claim token and
    leased for long enough to process the whole batch (batch_lease_seconds).
    next_retry_at is left alone so a crashed worker's rows become due again
    as soon as the lease runs out.
    """
    if now is None:
        now = timezone.now()
    if limit is None:
        limit = getattr(settings, 'WEBHOOK_BATCH_SIZE', 50)
    token = uuid.uuid4()

    with transaction.atomic():
        candidates = DeliveryTask.objects.due(now).order_by('created_at')
        if connection.features.has_select_for_update_skip_locked:
            candidates = candidates.select_for_update(skip_locked=True)
        candidate_ids = list(candidates.values_list('id', flat=True)[:limit])
        if not candidate_ids:
            return []

        lease = timedelta(seconds=batch_lease_seconds(len(candidate_ids)))

        # Re-check eligibility in the UPDATE itself
        claimed = DeliveryTask.objects.due(now).filter(id__in=candidate_ids).update(
            status=DeliveryTask.Status.RETRYING,
            claim_token=token,
            locked_until=now + lease,
            updated_at=now,
        )

    logger.debug(f"Claim {token}: {claimed} of {len(candidate_ids)} candidates, lease {lease}")

    return list(
        DeliveryTask.objects
        .filter(claim_token=token)
        .select_related('partner')
        .order_by('created_at')
    )


def renew_claim(task: DeliveryTask, now: Optional[datetime] = None) -> bool:
    """
    Confirm the claim is still held and extend it for one attempt.

    Must succeed before anything is sent: a worker whose lease ran out, or
    whose row was claimed by another worker, gets False and must not send.
    """
    if now is None:
        now = timezone.now()
    if task.claim_token is None:
        return False

    locked_until = now + timedelta(seconds=attempt_lease_seconds())
    renewed = DeliveryTask.objects.filter(
        pk=task.pk,
        claim_token=task.claim_token,
        status=DeliveryTask.Status.RETRYING,
        attempts=task.attempts,
        locked_until__gt=now,
    ).update(locked_until=locked_until, updated_at=now)

    if not renewed:
        logger.warning(f"Delivery {task.id}: claim no longer held, not sending")
        return False

    task.locked_until = locked_until
    return True


def record_outcome(
    task: DeliveryTask,
    outcome: DeliveryOutcome,
    now: Optional[datetime] = None
) -> Optional[DeliveryTask]:
    """
    Apply the state transition for one attempt and release the claim.

    - success: status=success, completed_at=now, next_retry_at=None
    - failure with attempts >= max_attempts: status=failed, completed_at=now
    - other failure: status=retrying, next_retry_at=now + backoff(attempts)

    Returns:
        The refreshed task, or None if the claim was lost (nothing written)
    """
    if now is None:
        now = timezone.now()

    attempts = task.attempts + 1
    fields = {
        'attempts': attempts,
        'last_attempt_at': now,
        'last_response_status': outcome.status_code,
        'last_response_body': outcome.response_body,
        'last_response_time_ms': outcome.response_time_ms,
        'claim_token': None,
        'locked_until': None,
        'updated_at': now,
    }

    if outcome.success:
        fields.update(
            status=DeliveryTask.Status.SUCCESS,
            completed_at=now,
            next_retry_at=None,
            last_error=None,
        )
    elif attempts >= task.max_attempts:
        fields.update(
            status=DeliveryTask.Status.FAILED,
            completed_at=now,
            next_retry_at=None,
            last_error=outcome.error,
        )
    else:
        fields.update(
            status=DeliveryTask.Status.RETRYING,
            next_retry_at=next_retry_time(attempts, now),
            last_error=outcome.error,
        )

    updated = DeliveryTask.objects.filter(
        pk=task.pk,
        claim_token=task.claim_token,
        claim_token__isnull=False,
        status=DeliveryTask.Status.RETRYING,
        attempts=task.attempts,
    ).update(**fields)

    if not updated:
        logger.warning(f"Delivery {task.id}: claim lost before outcome was recorded, discarding result")
        return None

    task.refresh_from_db()
    return task


def release_claim(task: DeliveryTask) -> bool:
    """
    Give a claimed task back without consuming an attempt.

    Status stays retrying and next_retry_at is unchanged, so the task is
    picked up again on the next cycle.
    """
    if task.claim_token is None:
        return False
    released = DeliveryTask.objects.filter(
        pk=task.pk,
        claim_token=task.claim_token,
    ).update(claim_token=None, locked_until=None, updated_at=timezone.now())
    if released:
        logger.info(f"Delivery {task.id}: claim released, attempt {task.attempts + 1} not consumed")
    return bool(released)


def mark_escalated(task: DeliveryTask, now: Optional[datetime] = None) -> bool:
    """
    Record that the exhaustion escalation for this task was dispatched.

    Returns:
        True for exactly one caller per exhausted task
    """
    if now is None:
        now = timezone.now()
    return bool(
        DeliveryTask.objects.exhausted().filter(
            pk=task.pk,
            escalated_at__isnull=True,
        ).update(escalated_at=now)
    )
