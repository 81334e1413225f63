"""
API views for Webhook Gateway Service.
"""
import logging
import time
import uuid

import httpx
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from deliveries.models import DeliveryTask
from deliveries.services.partner_client import send_to_partner
from deliveries.services.partners import PartnerUnavailableError, require_deliverable_partner
from deliveries.services.queue import enqueue_replay
from deliveries.services.signing import (
    BAD_FORMAT,
    TEST_HEADER,
    canonical_json,
    parse_signature_header,
    verify_signature,
)
from deliveries.services.stats import queue_stats
from deliveries.tasks import process_due_deliveries

logger = logging.getLogger(__name__)

validate_url = URLValidator(schemes=['http', 'https'])


class QueueStatsView(APIView):
    """
    Read-only delivery queue statistics for monitoring.

    GET /webhooks/deliveries/stats/?partner_id=<uuid>
    """

    permission_classes = [IsAdminUser]

    def get(self, request):
        partner_id = request.query_params.get('partner_id') or None
        if partner_id is not None:
            try:
                partner_id = uuid.UUID(partner_id)
            except ValueError:
                return Response(
                    {'error': 'Invalid partner_id'},
                    status=status.HTTP_400_BAD_REQUEST
                )
        return Response(queue_stats(partner_id=partner_id), status=status.HTTP_200_OK)


class RunDeliveriesView(APIView):
    """
    Trigger a delivery cycle now instead of waiting for the scheduler.

    POST /webhooks/deliveries/run/
    """

    permission_classes = [IsAdminUser]

    def post(self, request):
        result = process_due_deliveries.delay()
        logger.info(f"Delivery cycle {result.id} triggered by {request.user}")
        return Response(
            {'status': 'queued', 'task_id': result.id},
            status=status.HTTP_202_ACCEPTED
        )


@method_decorator(csrf_exempt, name='dispatch')
class SignatureValidationView(APIView):
    """
    Check a webhook signature the way a partner's receiver would.

    POST /webhooks/signature/validate/
    - Body: {"payload": <json>, "signature_header": "t=...,v1=...", "secret": "..."}
    - 200 OK: signature valid
    - 400 Bad Request: missing fields or malformed header
    - 401 Unauthorized: stale timestamp or signature mismatch
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        correlation_id = str(uuid.uuid4())
        data = request.data if isinstance(request.data, dict) else {}

        missing = [field for field in ('payload', 'signature_header', 'secret') if field not in data]
        if missing:
            logger.warning(
                f"Signature validation request missing {missing}, "
                f"correlation_id={correlation_id}"
            )
            return Response(
                {
                    'error': f"Missing required fields: {', '.join(missing)}",
                    'correlation_id': correlation_id
                },
                status=status.HTTP_400_BAD_REQUEST
            )

        header = data['signature_header']
        tolerance = getattr(settings, 'WEBHOOK_SIGNATURE_TOLERANCE_SECONDS', 300)
        now = int(time.time())
        is_valid, reason = verify_signature(
            data['payload'],
            header,
            str(data['secret']),
            tolerance_seconds=tolerance,
            now=now,
        )

        parsed = parse_signature_header(header)
        body = {
            'valid': is_valid,
            'reason': reason,
            'timestamp': parsed[0] if parsed else None,
            'current_time': now,
            'correlation_id': correlation_id,
        }

        if is_valid:
            return Response(body, status=status.HTTP_200_OK)

        logger.warning(f"Signature validation failed: {reason}, correlation_id={correlation_id}")
        if reason == BAD_FORMAT:
            return Response(body, status=status.HTTP_400_BAD_REQUEST)
        return Response(body, status=status.HTTP_401_UNAUTHORIZED)


class ReplayDeliveryView(APIView):
    """
    Re-send a stored delivery as a new queued task.

    POST /webhooks/deliveries/<delivery_id>/replay/
    - Body (optional): {"target_url": "...", "payload": <json>}
    - 202 Accepted: replay queued, linked to the original
    - 400 Bad Request: invalid target URL or payload
    - 404 Not Found: no such delivery
    """

    permission_classes = [IsAdminUser]

    def post(self, request, delivery_id):
        try:
            original = DeliveryTask.objects.get(pk=delivery_id)
        except DeliveryTask.DoesNotExist:
            return Response({'error': 'Delivery not found'}, status=status.HTTP_404_NOT_FOUND)

        data = request.data if isinstance(request.data, dict) else {}
        target_url = data.get('target_url') or None
        if target_url is not None:
            try:
                validate_url(target_url)
            except ValidationError:
                return Response({'error': 'Invalid target_url'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            replay = enqueue_replay(original, target_url=target_url, payload=data.get('payload'))
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"Delivery {original.id} replayed as {replay.id} by {request.user}")
        return Response(
            {
                'status': 'queued',
                'delivery_id': str(replay.id),
                'replay_of': str(original.id),
                'target_url': replay.target_url or None,
            },
            status=status.HTTP_202_ACCEPTED
        )


class SendTestWebhookView(APIView):
    """
    Send a signed test payload to a partner endpoint and report the result.

    POST /webhooks/test/
    - Body: {"partner_id": "...", "payload": <json>, "callback_url": "..." (optional)}
    - 200 OK: {success, response_status, response_body, response_time_ms, error_message}
    - 400 Bad Request: missing fields, unusable partner, invalid URL or payload

    Nothing is queued; the request is made once with WEBHOOK_TEST_TIMEOUT_SECONDS.
    """

    permission_classes = [IsAdminUser]

    def post(self, request):
        data = request.data if isinstance(request.data, dict) else {}
        missing = [field for field in ('partner_id', 'payload') if field not in data]
        if missing:
            return Response(
                {'error': f"Missing required fields: {', '.join(missing)}"},
                status=status.HTTP_400_BAD_REQUEST
            )

        callback_url = data.get('callback_url') or None
        try:
            partner = require_deliverable_partner(data['partner_id'], require_endpoint=callback_url is None)
        except PartnerUnavailableError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        url = callback_url or partner.endpoint_url
        try:
            validate_url(url)
        except ValidationError:
            return Response({'error': 'Invalid callback_url'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            body = canonical_json(data['payload'])
        except (TypeError, ValueError) as e:
            return Response({'error': f"Payload is not JSON-serializable: {e}"}, status=status.HTTP_400_BAD_REQUEST)

        timeout = getattr(settings, 'WEBHOOK_TEST_TIMEOUT_SECONDS', 10.0)
        result = {
            'success': False,
            'response_status': None,
            'response_body': None,
            'response_time_ms': None,
            'error_message': None,
        }

        started = time.monotonic()
        try:
            response = send_to_partner(
                url=url,
                body=body,
                secret=partner.secret,
                delivery_id=f"test-{uuid.uuid4()}",
                attempt=1,
                timeout=timeout,
                extra_headers={TEST_HEADER: 'true'},
            )
        except httpx.TimeoutException:
            result['error_message'] = f"Request timeout ({timeout:g} seconds)"
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            result['error_message'] = f"{type(e).__name__}: {e}"
        else:
            result.update(
                success=response.ok,
                response_status=response.status_code,
                response_body=response.body,
            )
            if not response.ok:
                result['error_message'] = f"HTTP {response.status_code}: {response.body[:200]}"
        result['response_time_ms'] = int((time.monotonic() - started) * 1000)

        logger.info(
            f"Test webhook to {url} for partner {partner.partner_id} by {request.user}: "
            f"{result['response_status'] or result['error_message']}"
        )
        return Response(result, status=status.HTTP_200_OK)
