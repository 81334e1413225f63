"""
HTTP client for delivering signed webhooks to partner endpoints.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from django.conf import settings

from deliveries.services.signing import (
    ATTEMPT_HEADER,
    DELIVERY_ID_HEADER,
    SIGNATURE_HEADER,
    sign,
)

logger = logging.getLogger(__name__)

RESPONSE_BODY_LIMIT = 1000


@dataclass
class DeliveryResponse:
    status_code: int
    body: str
    elapsed_ms: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def send_to_partner(
    url: str,
    body: str,
    secret: str,
    delivery_id: str,
    attempt: int,
    timeout: Optional[float] = None,
    extra_headers: Optional[dict] = None,
) -> DeliveryResponse:
    """
    POST a signed webhook body to a partner endpoint.

    The body is sent byte-for-byte as stored; it is signed right before
    the request so the timestamp is fresh on every attempt.

    Args:
        url: Partner callback URL
        body: Canonical JSON body
        secret: Partner's shared secret
        delivery_id: DeliveryTask id, lets the receiver de-duplicate
        attempt: 1-based attempt number
        timeout: Request timeout in seconds (defaults to WEBHOOK_TIMEOUT_SECONDS)
        extra_headers: Additional request headers, e.g. the test marker

    Returns:
        DeliveryResponse with status code, truncated body and elapsed time

    Raises:
        httpx.HTTPError: On network/timeout errors
        httpx.InvalidURL: On a malformed callback URL
    """
    if timeout is None:
        timeout = getattr(settings, 'WEBHOOK_TIMEOUT_SECONDS', 30.0)

    signed = sign(body, secret)
    headers = {
        'Content-Type': 'application/json',
        SIGNATURE_HEADER: signed.header,
        DELIVERY_ID_HEADER: str(delivery_id),
        ATTEMPT_HEADER: str(attempt),
    }
    if extra_headers:
        headers.update(extra_headers)

    logger.info(f"Sending webhook {delivery_id} to {url} (attempt {attempt})")

    started = time.monotonic()
    try:
        response = httpx.post(
            url,
            content=body.encode('utf-8'),
            headers=headers,
            timeout=timeout
        )
    except httpx.TimeoutException as e:
        logger.error(f"Timeout sending webhook {delivery_id} to {url}: {e}")
        raise
    except httpx.ConnectError as e:
        logger.error(f"Connection error sending webhook {delivery_id} to {url}: {e}")
        raise
    except httpx.HTTPError as e:
        logger.error(f"HTTP error sending webhook {delivery_id} to {url}: {e}")
        raise
    except httpx.InvalidURL as e:
        logger.error(f"Invalid callback URL for webhook {delivery_id}: {e}")
        raise
    elapsed_ms = int((time.monotonic() - started) * 1000)

    logger.info(f"Partner response for {delivery_id}: {response.status_code} in {elapsed_ms}ms")

    return DeliveryResponse(
        status_code=response.status_code,
        body=(response.text or '')[:RESPONSE_BODY_LIMIT],
        elapsed_ms=elapsed_ms,
    )
