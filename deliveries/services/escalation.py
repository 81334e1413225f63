"""
Operator escalation for deliveries that exhausted all attempts.

The channel is pluggable through WEBHOOK_ESCALATION_CHANNEL (dotted path to a
class with ``send(message, recipients)``). Failures here are logged and
swallowed; they must never break the delivery loop.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.utils.module_loading import import_string

from deliveries.models import DeliveryTask
from deliveries.services.partners import PartnerConfig

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = 'deliveries.services.escalation.EmailChannel'

REQUIRED_ACTIONS = (
    "Verify the callback URL is correct and accessible",
    "Check with the business partner about their webhook endpoint status",
    "Review the payload and error details in the admin",
    "Replay the delivery (POST /webhooks/deliveries/<Webhook ID>/replay/) or update the callback URL",
)


@dataclass
class EscalationMessage:
    subject: str
    body: str


class EmailChannel:
    """Sends escalations through Django's configured email backend."""

    def send(self, message: EscalationMessage, recipients: List[str]) -> None:
        send_mail(
            subject=message.subject,
            message=message.body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipients,
            fail_silently=False,
        )


def get_channel():
    path = getattr(settings, 'WEBHOOK_ESCALATION_CHANNEL', DEFAULT_CHANNEL)
    return import_string(path)()


def get_operator_emails() -> List[str]:
    """Active staff users with an email address, plus WEBHOOK_ESCALATION_EMAILS."""
    User = get_user_model()
    staff_emails = (
        User.objects
        .filter(is_staff=True, is_active=True)
        .exclude(email='')
        .order_by('email')
        .values_list('email', flat=True)
    )
    configured = getattr(settings, 'WEBHOOK_ESCALATION_EMAILS', [])

    emails = []
    for email in [*staff_emails, *configured]:
        if email and email not in emails:
            emails.append(email)
    return emails


def build_escalation_message(
    task: DeliveryTask,
    partner: Optional[PartnerConfig],
    last_error: Optional[str],
) -> EscalationMessage:
    partner_name = partner.name if partner else 'Unknown'
    contact_email = (partner.contact_email if partner else '') or 'N/A'
    endpoint = (partner.endpoint_url if partner else '') or 'N/A'

    lines = [
        f"A webhook has failed after {task.max_attempts} attempts and requires manual intervention.",
        "",
        f"Webhook ID:       {task.id}",
        f"Business Partner: {partner_name}",
        f"Contact Email:    {contact_email}",
        f"Callback URL:     {endpoint}",
        f"Total Attempts:   {task.attempts} / {task.max_attempts}",
        f"Last Error:       {last_error or 'Unknown error'}",
        "",
        "Required actions:",
    ]
    lines.extend(f"- {action}" for action in REQUIRED_ACTIONS)

    return EscalationMessage(
        subject=f"Webhook delivery failed for {partner_name} - manual intervention required",
        body="\n".join(lines),
    )


def notify_exhausted(
    task: DeliveryTask,
    partner: Optional[PartnerConfig],
    last_error: Optional[str],
) -> bool:
    """
    Alert operators that a delivery exhausted its attempts.

    Returns:
        True if the message was handed to the channel, False otherwise.
        Never raises.
    """
    try:
        recipients = get_operator_emails()
        if not recipients:
            logger.warning(f"Delivery {task.id} exhausted but no operator contacts are configured")
            return False

        message = build_escalation_message(task, partner, last_error)
        get_channel().send(message, recipients)
        logger.info(f"Escalation for delivery {task.id} sent to {len(recipients)} operator(s)")
        return True
    except Exception:
        logger.exception(f"Failed to send escalation for delivery {task.id}")
        return False
