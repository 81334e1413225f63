"""
Celery tasks and delivery worker for outbound partner webhooks.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import httpx
from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from django.conf import settings
from django.db import connections

from deliveries.models import DeliveryTask
from deliveries.services.escalation import notify_exhausted
from deliveries.services.partner_client import send_to_partner
from deliveries.services.partners import (
    PartnerUnavailableError,
    get_partner,
    require_deliverable_partner,
)
from deliveries.services.queue import (
    DeliveryOutcome,
    claim_due,
    mark_escalated,
    record_outcome,
    release_claim,
    renew_claim,
)
from deliveries.services.usage import record_usage

logger = logging.getLogger(__name__)

SUCCEEDED = 'succeeded'
FAILED = 'failed'
EXHAUSTED = 'exhausted'
SKIPPED = 'skipped'

# Interruptions that must not consume an attempt
CANCELLATION_ERRORS = (SoftTimeLimitExceeded, KeyboardInterrupt, SystemExit)


def _attempt(task: DeliveryTask, attempt_no: int):
    """Perform the network call and classify it. Returns (outcome, partner)."""
    partner = None
    started = time.monotonic()
    try:
        partner = require_deliverable_partner(task.partner_id, require_endpoint=not task.target_url)
        response = send_to_partner(
            url=task.target_url or partner.endpoint_url,
            body=task.payload,
            secret=partner.secret,
            delivery_id=task.id,
            attempt=attempt_no,
        )
    except PartnerUnavailableError as e:
        return DeliveryOutcome(success=False, error=str(e)), partner
    except httpx.TimeoutException as e:
        return DeliveryOutcome(
            success=False,
            error=f"Request timeout: {e}",
            response_time_ms=int((time.monotonic() - started) * 1000),
        ), partner
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return DeliveryOutcome(
            success=False,
            error=f"{type(e).__name__}: {e}",
            response_time_ms=int((time.monotonic() - started) * 1000),
        ), partner

    if response.ok:
        return DeliveryOutcome(
            success=True,
            status_code=response.status_code,
            response_body=response.body,
            response_time_ms=response.elapsed_ms,
        ), partner

    # Any non-2xx, 4xx included, consumes an attempt
    return DeliveryOutcome(
        success=False,
        status_code=response.status_code,
        error=f"HTTP {response.status_code}: {response.body[:200]}",
        response_body=response.body,
        response_time_ms=response.elapsed_ms,
    ), partner


def _escalate(task: DeliveryTask, partner, last_error, now=None) -> bool:
    """Stamp and notify; only the caller that wins the stamp sends."""
    if not mark_escalated(task, now=now):
        return False
    notify_exhausted(task, partner or get_partner(task.partner_id), last_error)
    return True


def escalate_missed(now=None) -> int:
    """
    Escalate exhausted deliveries whose escalation never went out.

    Covers a worker that died between recording the final failure and
    stamping escalated_at.

    Returns:
        Number of escalations dispatched
    """
    batch_size = getattr(settings, 'WEBHOOK_BATCH_SIZE', 50)
    missed = (
        DeliveryTask.objects.exhausted()
        .filter(escalated_at__isnull=True)
        .order_by('completed_at')[:batch_size]
    )
    escalated = 0
    for task in missed:
        logger.warning(f"Delivery {task.id} exhausted without escalation, escalating now")
        if _escalate(task, None, task.last_error, now=now):
            escalated += 1
    return escalated


def deliver_task(task: DeliveryTask, now=None) -> str:
    """
    Make one delivery attempt for a claimed task.

    Workflow:
    1. Confirm the claim is still held and extend it for this attempt
    2. Resolve the partner's current endpoint and secret
    3. Sign the stored payload and POST it with a bounded timeout
    4. Classify: 2xx is success, anything else is a failed attempt
    5. Persist the transition (retrying with backoff, success, or exhausted)
    6. Success: append a usage record. Exhausted: escalate once

    Args:
        task: A task returned by claim_due
        now: Transition time (defaults to the time the attempt finished)

    Returns:
        One of SUCCEEDED, FAILED, EXHAUSTED, SKIPPED
    """
    if not renew_claim(task, now=now):
        return SKIPPED

    attempt_no = task.attempts + 1
    logger.info(f"Delivery {task.id}: attempt #{attempt_no}/{task.max_attempts}")

    try:
        outcome, partner = _attempt(task, attempt_no)
    except CANCELLATION_ERRORS:
        logger.warning(f"Delivery {task.id}: interrupted during attempt #{attempt_no}")
        release_claim(task)
        raise

    updated = record_outcome(task, outcome, now=now)
    if updated is None:
        return SKIPPED

    if outcome.success:
        logger.info(f"Delivery {task.id} DELIVERED ({outcome.status_code}, {outcome.response_time_ms}ms)")
        try:
            record_usage(
                partner_id=updated.partner_id,
                endpoint=updated.target_url or partner.endpoint_url,
                status_code=outcome.status_code,
                response_time_ms=outcome.response_time_ms,
                delivery=updated,
            )
        except Exception:
            logger.exception(f"Delivery {task.id}: failed to record usage")
        return SUCCEEDED

    if updated.is_exhausted:
        logger.error(
            f"Delivery {task.id} EXHAUSTED after {updated.attempts} attempts: {outcome.error}"
        )
        _escalate(updated, partner, outcome.error, now=now)
        return EXHAUSTED

    logger.warning(
        f"Delivery {task.id} FAILED: {outcome.error}, "
        f"will retry at {updated.next_retry_at.isoformat()} "
        f"(attempt {updated.attempts}/{updated.max_attempts})"
    )
    return FAILED


def _deliver_contained(task: DeliveryTask, now=None) -> str:
    """Run deliver_task so that one task's error never affects the batch."""
    try:
        return deliver_task(task, now=now)
    except CANCELLATION_ERRORS:
        raise
    except Exception:
        logger.exception(f"Delivery {task.id}: unexpected error, releasing claim")
        try:
            release_claim(task)
        except Exception:
            logger.exception(f"Delivery {task.id}: could not release claim, lease will expire")
        return SKIPPED


def _deliver_in_thread(task: DeliveryTask, now=None) -> str:
    try:
        return _deliver_contained(task, now=now)
    finally:
        connections.close_all()


def _deliver_parallel(tasks: List[DeliveryTask], concurrency: int, now=None) -> List[str]:
    """
    Deliver with a bounded thread pool.

    On cancellation, tasks that have not started are cancelled and their
    claims released so the next cycle picks them up.
    """
    executor = ThreadPoolExecutor(max_workers=min(concurrency, len(tasks)))
    futures = [executor.submit(_deliver_in_thread, task, now) for task in tasks]
    try:
        results = [future.result() for future in futures]
    except CANCELLATION_ERRORS:
        executor.shutdown(wait=False, cancel_futures=True)
        for task, future in zip(tasks, futures):
            if future.cancelled():
                release_claim(task)
        raise
    executor.shutdown()
    return results


def run_delivery_cycle(limit: Optional[int] = None, now=None) -> dict:
    """
    Claim due deliveries and attempt each one.

    Exhausted deliveries that were never escalated are escalated first.
    Tasks in the batch are independent and run with bounded parallelism
    (WEBHOOK_WORKER_CONCURRENCY).

    Returns:
        Counters: processed, succeeded, failed (all failed attempts),
        exhausted (subset of failed), skipped
    """
    escalate_missed(now=now)

    tasks = claim_due(limit=limit, now=now)
    summary = {'processed': 0, SUCCEEDED: 0, FAILED: 0, EXHAUSTED: 0, SKIPPED: 0}
    if not tasks:
        logger.debug("No deliveries due")
        return summary

    logger.info(f"Claimed {len(tasks)} deliveries")

    concurrency = getattr(settings, 'WEBHOOK_WORKER_CONCURRENCY', 1)
    if concurrency <= 1 or len(tasks) == 1:
        results = [_deliver_contained(task, now=now) for task in tasks]
    else:
        results = _deliver_parallel(tasks, concurrency, now=now)

    for result in results:
        summary['processed'] += 1
        summary[result] += 1
        if result == EXHAUSTED:
            summary[FAILED] += 1

    logger.info(
        f"Delivery cycle completed: {summary['processed']} processed, "
        f"{summary[SUCCEEDED]} succeeded, {summary[FAILED]} failed, "
        f"{summary[EXHAUSTED]} exhausted, {summary[SKIPPED]} skipped"
    )
    return summary


@shared_task
def process_due_deliveries(limit: Optional[int] = None) -> dict:
    """
    Periodic entry point (Celery beat, every WEBHOOK_POLL_INTERVAL_SECONDS).

    Overlapping runs across workers are safe: claim_due hands each due
    task to exactly one of them, and renew_claim stops a worker whose
    lease was taken over from sending.
    """
    return run_delivery_cycle(limit=limit)
