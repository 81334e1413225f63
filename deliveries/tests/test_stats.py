"""
Unit tests for queue statistics.
"""
import pytest

from deliveries.models import DeliveryTask, Partner
from deliveries.services.queue import enqueue
from deliveries.services.stats import queue_stats


@pytest.mark.django_db
class TestQueueStats:
    """Tests for queue_stats function."""

    def _set(self, task, **fields):
        DeliveryTask.objects.filter(pk=task.pk).update(**fields)

    def test_empty_queue(self, db):
        assert queue_stats() == {
            'total': 0,
            'pending': 0,
            'retrying': 0,
            'success': 0,
            'failed': 0,
            'exhausted': 0,
            'avg_response_time_ms': 0.0,
            'success_rate': 0.0,
        }

    def test_counts_by_status(self, partner, event_payload):
        Status = DeliveryTask.Status
        enqueue(partner.id, event_payload)
        self._set(enqueue(partner.id, event_payload), status=Status.RETRYING, attempts=2)
        self._set(enqueue(partner.id, event_payload), status=Status.SUCCESS, attempts=1,
                  last_response_time_ms=100)
        self._set(enqueue(partner.id, event_payload), status=Status.SUCCESS, attempts=1,
                  last_response_time_ms=50)
        self._set(enqueue(partner.id, event_payload, max_attempts=5), status=Status.FAILED, attempts=5)

        stats = queue_stats()

        assert stats['total'] == 5
        assert stats['pending'] == 1
        assert stats['retrying'] == 1
        assert stats['success'] == 2
        assert stats['failed'] == 1
        assert stats['exhausted'] == 1
        assert stats['success_rate'] == 40.0
        assert stats['avg_response_time_ms'] == 75.0

    def test_filtered_by_partner(self, partner, event_payload):
        other = Partner.objects.create(business_name='Other', callback_url='https://other.example/h', api_key='k')
        enqueue(partner.id, event_payload)
        enqueue(other.id, event_payload)
        enqueue(other.id, event_payload)

        assert queue_stats(partner_id=partner.id)['total'] == 1
        assert queue_stats(partner_id=other.id)['total'] == 2
