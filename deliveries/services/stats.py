"""
Read-only queue statistics for monitoring.
"""
from django.db.models import Avg, Count, F, Q

from deliveries.models import DeliveryTask


def queue_stats(partner_id=None) -> dict:
    """
    Aggregate delivery counts by state, success rate and average latency.

    Args:
        partner_id: Restrict to one partner's deliveries

    Returns:
        Dictionary with total, per-status counts, exhausted, success_rate
        (percent of all deliveries) and avg_response_time_ms
    """
    queryset = DeliveryTask.objects.all()
    if partner_id is not None:
        queryset = queryset.filter(partner_id=partner_id)

    Status = DeliveryTask.Status
    totals = queryset.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=Status.PENDING)),
        retrying=Count('id', filter=Q(status=Status.RETRYING)),
        success=Count('id', filter=Q(status=Status.SUCCESS)),
        failed=Count('id', filter=Q(status=Status.FAILED)),
        exhausted=Count('id', filter=Q(status=Status.FAILED, attempts__gte=F('max_attempts'))),
        avg_response_time_ms=Avg('last_response_time_ms'),
    )

    total = totals['total']
    totals['success_rate'] = round(totals['success'] / total * 100, 2) if total else 0.0
    avg = totals['avg_response_time_ms']
    totals['avg_response_time_ms'] = round(avg, 2) if avg is not None else 0.0
    return totals
