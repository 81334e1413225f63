"""
Usage recorder: one append-only row per successful delivery.
"""
import logging
from typing import Optional

from deliveries.models import DeliveryTask, UsageRecord

logger = logging.getLogger(__name__)


def record_usage(
    partner_id,
    endpoint: str,
    status_code: int,
    response_time_ms: Optional[int],
    delivery: Optional[DeliveryTask] = None,
    method: str = 'POST',
) -> UsageRecord:
    """Append a usage entry for partner-facing analytics and billing."""
    record = UsageRecord.objects.create(
        partner_id=partner_id,
        delivery=delivery,
        endpoint=endpoint,
        method=method,
        status_code=status_code,
        response_time_ms=response_time_ms,
    )
    logger.debug(f"Usage recorded for partner {partner_id}: {method} {endpoint} -> {status_code}")
    return record
