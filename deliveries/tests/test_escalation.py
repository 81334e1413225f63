"""
Unit tests for operator escalation.
"""
import pytest
from unittest.mock import patch, Mock

from django.contrib.auth import get_user_model

from deliveries.services.escalation import (
    EmailChannel,
    EscalationMessage,
    build_escalation_message,
    get_operator_emails,
    notify_exhausted,
)
from deliveries.services.partners import get_partner
from deliveries.services.queue import enqueue


class RecordingChannel:
    """Escalation channel that keeps sent messages in memory."""

    sent = []

    def send(self, message, recipients):
        RecordingChannel.sent.append((message, recipients))


@pytest.fixture(autouse=True)
def no_configured_operators(settings):
    settings.WEBHOOK_ESCALATION_EMAILS = []


@pytest.fixture
def exhausted_task(partner, event_payload):
    task = enqueue(partner.id, event_payload, max_attempts=3)
    task.attempts = 3
    return task


@pytest.mark.django_db
class TestGetOperatorEmails:
    """Tests for get_operator_emails function."""

    def test_active_staff_with_email(self, operator):
        User = get_user_model()
        User.objects.create_user(username='customer', email='customer@example.com')
        User.objects.create_user(username='former', email='former@gateway.example', is_staff=True, is_active=False)
        User.objects.create_user(username='noemail', email='', is_staff=True)

        assert get_operator_emails() == ['operator@gateway.example']

    def test_configured_addresses_appended_without_duplicates(self, operator, settings):
        settings.WEBHOOK_ESCALATION_EMAILS = ['oncall@gateway.example', 'operator@gateway.example']

        assert get_operator_emails() == ['operator@gateway.example', 'oncall@gateway.example']

    def test_no_operators(self, db):
        assert get_operator_emails() == []


@pytest.mark.django_db
class TestBuildEscalationMessage:
    """Tests for build_escalation_message function."""

    def test_message_contents(self, partner, exhausted_task):
        message = build_escalation_message(exhausted_task, get_partner(partner.id), 'HTTP 500: boom')

        assert message.subject == 'Webhook delivery failed for Acme Rentals - manual intervention required'
        assert f'Webhook ID:       {exhausted_task.id}' in message.body
        assert 'Business Partner: Acme Rentals' in message.body
        assert 'Contact Email:    ops@acme-rentals.example' in message.body
        assert f'Callback URL:     {partner.callback_url}' in message.body
        assert 'Total Attempts:   3 / 3' in message.body
        assert 'Last Error:       HTTP 500: boom' in message.body
        assert 'Required actions:' in message.body
        assert '/webhooks/deliveries/<Webhook ID>/replay/' in message.body

    def test_unknown_partner(self, exhausted_task):
        message = build_escalation_message(exhausted_task, None, None)

        assert 'Unknown' in message.subject
        assert 'Contact Email:    N/A' in message.body
        assert 'Last Error:       Unknown error' in message.body


@pytest.mark.django_db
class TestNotifyExhausted:
    """Tests for notify_exhausted function."""

    def test_email_sent_to_operators(self, partner, operator, exhausted_task, mailoutbox, settings):
        settings.DEFAULT_FROM_EMAIL = 'webhooks@gateway.example'

        assert notify_exhausted(exhausted_task, get_partner(partner.id), 'HTTP 500: boom') is True

        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ['operator@gateway.example']
        assert mailoutbox[0].from_email == 'webhooks@gateway.example'

    def test_no_recipients_returns_false(self, partner, exhausted_task, mailoutbox):
        assert notify_exhausted(exhausted_task, get_partner(partner.id), 'boom') is False
        assert len(mailoutbox) == 0

    def test_channel_error_is_swallowed(self, partner, operator, exhausted_task):
        with patch.object(EmailChannel, 'send', side_effect=ConnectionRefusedError('smtp down')):
            assert notify_exhausted(exhausted_task, get_partner(partner.id), 'boom') is False

    def test_configured_channel_used(self, partner, operator, exhausted_task, settings):
        settings.WEBHOOK_ESCALATION_CHANNEL = 'deliveries.tests.test_escalation.RecordingChannel'
        RecordingChannel.sent = []

        assert notify_exhausted(exhausted_task, get_partner(partner.id), 'boom') is True

        message, recipients = RecordingChannel.sent[0]
        assert isinstance(message, EscalationMessage)
        assert recipients == ['operator@gateway.example']


class TestEmailChannel:
    """Tests for EmailChannel."""

    @patch('deliveries.services.escalation.send_mail')
    def test_send_does_not_fail_silently(self, mock_send_mail):
        EmailChannel().send(EscalationMessage(subject='s', body='b'), ['a@example.com'])

        call_kwargs = mock_send_mail.call_args.kwargs
        assert call_kwargs['recipient_list'] == ['a@example.com']
        assert call_kwargs['fail_silently'] is False
