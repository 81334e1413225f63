"""
Partner directory: current endpoint and signing secret for a partner.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError

from deliveries.models import Partner

logger = logging.getLogger(__name__)


class PartnerUnavailableError(Exception):
    """Raised when a partner cannot receive deliveries (missing, inactive, no endpoint)."""
    pass


@dataclass(frozen=True)
class PartnerConfig:
    partner_id: str
    name: str
    contact_email: str
    endpoint_url: str
    secret: str
    active: bool


def get_partner(partner_id) -> Optional[PartnerConfig]:
    """
    Look up a partner's delivery configuration.

    Returns:
        PartnerConfig, or None if no such partner exists
    """
    try:
        partner = Partner.objects.get(pk=partner_id)
    except (Partner.DoesNotExist, ValidationError, ValueError):
        logger.warning(f"Partner {partner_id} not found")
        return None

    return PartnerConfig(
        partner_id=str(partner.id),
        name=partner.business_name,
        contact_email=partner.contact_email,
        endpoint_url=partner.callback_url,
        secret=partner.api_key,
        active=partner.is_active,
    )


def require_deliverable_partner(partner_id, require_endpoint: bool = True) -> PartnerConfig:
    """
    Like get_partner, but only returns partners that can receive a webhook.

    Args:
        partner_id: Partner to look up
        require_endpoint: False when the caller supplies its own target URL

    Raises:
        PartnerUnavailableError: With a diagnostic suitable for last_error
    """
    partner = get_partner(partner_id)
    if partner is None:
        raise PartnerUnavailableError(f"Partner {partner_id} not found")
    if not partner.active:
        raise PartnerUnavailableError(f"Partner {partner.name} is inactive")
    if require_endpoint and not partner.endpoint_url:
        raise PartnerUnavailableError(f"Partner {partner.name} has no callback URL configured")
    if not partner.secret:
        raise PartnerUnavailableError(f"Partner {partner.name} has no API key configured")
    return partner
