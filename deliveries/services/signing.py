"""
HMAC-SHA256 signing and verification for outbound webhooks.

Header format: ``X-Webhook-Signature: t=<unix seconds>,v1=<hex signature>``
where the signature covers ``"{t}.{canonical JSON body}"``.
"""
import hashlib
import hmac
import json
import logging
import time
from typing import Any, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'X-Webhook-Signature'
DELIVERY_ID_HEADER = 'X-Webhook-Delivery-Id'
ATTEMPT_HEADER = 'X-Webhook-Attempt'
TEST_HEADER = 'X-Webhook-Test'

DEFAULT_TOLERANCE_SECONDS = 300

# Verification failure reasons
BAD_FORMAT = 'bad format'
STALE = 'stale'
SIGNATURE_MISMATCH = 'signature mismatch'
INVALID_JSON = 'invalid json'


class WebhookSignatureError(Exception):
    """Raised when an incoming webhook fails verification."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Webhook signature verification failed: {reason}")


class SignedPayload(NamedTuple):
    timestamp: int
    signature: str
    header: str


def canonical_json(payload: Any) -> str:
    """
    Serialize a JSON value deterministically.

    Keys are sorted and separators carry no whitespace, so sender and
    receiver produce identical bytes for equal values.

    Raises:
        TypeError: If the payload is not JSON-serializable
        ValueError: If the payload contains NaN/Infinity or circular references
    """
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    )


def _body_text(payload: Union[str, bytes, Any]) -> str:
    """Already-serialized bodies are signed as-is; anything else is canonicalized."""
    if isinstance(payload, bytes):
        return payload.decode('utf-8')
    if isinstance(payload, str):
        return payload
    return canonical_json(payload)


def compute_signature(body: str, secret: str, timestamp: int) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``"{timestamp}.{body}"``."""
    message = f"{timestamp}.{body}"
    return hmac.new(
        key=secret.encode('utf-8'),
        msg=message.encode('utf-8'),
        digestmod=hashlib.sha256,
    ).hexdigest()


def format_signature_header(timestamp: int, signature: str) -> str:
    return f"t={timestamp},v1={signature}"


def sign(payload: Union[str, bytes, Any], secret: str, timestamp: Optional[int] = None) -> SignedPayload:
    """
    Sign a webhook payload.

    Args:
        payload: A JSON value, or the already-serialized canonical body
        secret: Shared secret of the receiving partner
        timestamp: Unix seconds to sign with (defaults to now)

    Returns:
        SignedPayload with timestamp, signature and the header value
    """
    if timestamp is None:
        timestamp = int(time.time())
    signature = compute_signature(_body_text(payload), secret, timestamp)
    return SignedPayload(timestamp, signature, format_signature_header(timestamp, signature))


def parse_signature_header(header: Optional[str]) -> Optional[Tuple[int, str]]:
    """
    Parse ``t=<timestamp>,v1=<signature>``.

    Returns:
        (timestamp, signature), or None when the header is malformed
    """
    if not header or not isinstance(header, str):
        return None

    timestamp = None
    signature = None
    for part in header.split(','):
        key, sep, value = part.strip().partition('=')
        if not sep:
            continue
        if key == 't':
            try:
                timestamp = int(value)
            except ValueError:
                return None
        elif key == 'v1':
            signature = value

    if timestamp is None or not signature:
        return None
    return timestamp, signature


def verify_signature(
    payload: Union[str, bytes, Any],
    header: Optional[str],
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Verify a webhook signature header against a payload.

    Checks, in order:
    1. Header parses as ``t=<int>,v1=<sig>`` (else BAD_FORMAT)
    2. ``|now - t| <= tolerance_seconds`` (else STALE, replay protection)
    3. Recomputed signature matches in constant time (else SIGNATURE_MISMATCH)

    Args:
        payload: A JSON value, or the raw request body
        header: Value of the X-Webhook-Signature header
        secret: Shared secret
        tolerance_seconds: Accepted clock skew in seconds
        now: Current Unix time (defaults to time.time())

    Returns:
        Tuple of (is_valid, reason)
        - is_valid: True if the signature is authentic and fresh
        - reason: One of the failure constants, None when valid
    """
    parsed = parse_signature_header(header)
    if parsed is None:
        logger.debug("Signature rejected: malformed header %r", header)
        return False, BAD_FORMAT

    timestamp, signature = parsed
    if now is None:
        now = time.time()

    age = abs(now - timestamp)
    if age > tolerance_seconds:
        logger.debug(f"Signature rejected: timestamp skew {age:.0f}s exceeds {tolerance_seconds}s")
        return False, STALE

    try:
        body = _body_text(payload)
    except (TypeError, ValueError, UnicodeDecodeError):
        logger.debug("Signature rejected: payload cannot be serialized")
        return False, SIGNATURE_MISMATCH

    expected = compute_signature(body, secret, timestamp)
    if not hmac.compare_digest(expected.encode('utf-8'), signature.encode('utf-8')):
        logger.debug("Signature rejected: mismatch")
        return False, SIGNATURE_MISMATCH

    return True, None


def verify_and_parse(
    raw_body: Union[str, bytes],
    header: Optional[str],
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> Any:
    """
    Receiver-side helper: verify the raw body, then decode it.

    Raises:
        WebhookSignatureError: On any verification failure or undecodable body
    """
    is_valid, reason = verify_signature(raw_body, header, secret, tolerance_seconds)
    if not is_valid:
        raise WebhookSignatureError(reason)

    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise WebhookSignatureError(INVALID_JSON)
