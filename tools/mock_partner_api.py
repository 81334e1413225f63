"""
Lightweight mock partner endpoint for live delivery testing.

Verifies X-Webhook-Signature the way a real partner receiver should.

Endpoints:
- POST /webhooks/receive/  -> verifies signature, stores payload, returns 200
                              (401 on bad signature, FAIL_STATUS when set)
- GET  /_last              -> returns last accepted request
- POST /_reset             -> clears stored request and failure mode
- POST /_fail/<status>     -> answer subsequent deliveries with <status>
- GET  /_health            -> returns 200

Environment:
- MOCK_PARTNER_SECRET: shared secret (default "mock-partner-secret")
- MOCK_PARTNER_PORT:   listen port (default 8080)
"""
import json
import os
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional

from deliveries.services.signing import (
    ATTEMPT_HEADER,
    DELIVERY_ID_HEADER,
    SIGNATURE_HEADER,
    WebhookSignatureError,
    verify_and_parse,
)


SECRET = os.getenv("MOCK_PARTNER_SECRET", "mock-partner-secret")

LAST_REQUEST: Optional[dict] = None
FAIL_STATUS: Optional[int] = None


class Handler(BaseHTTPRequestHandler):
    secret = SECRET

    def _send_json(self, status_code: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length", "0"))
        return self.rfile.read(length) if length else b""

    def do_GET(self):  # noqa: N802
        if self.path == "/_health":
            return self._send_json(200, {"status": "ok"})

        if self.path == "/_last":
            return self._send_json(200, {"last": LAST_REQUEST})

        return self._send_json(404, {"error": "not_found"})

    def do_POST(self):  # noqa: N802
        global LAST_REQUEST, FAIL_STATUS

        if self.path == "/_reset":
            LAST_REQUEST = None
            FAIL_STATUS = None
            return self._send_json(200, {"status": "reset"})

        if self.path.startswith("/_fail/"):
            try:
                FAIL_STATUS = int(self.path.rsplit("/", 1)[-1])
            except ValueError:
                return self._send_json(400, {"error": "invalid_status"})
            return self._send_json(200, {"status": "failing", "code": FAIL_STATUS})

        if self.path.startswith("/webhooks/receive"):
            raw = self._read_body()
            if FAIL_STATUS is not None:
                return self._send_json(FAIL_STATUS, {"error": "simulated_failure"})

            try:
                payload = verify_and_parse(raw, self.headers.get(SIGNATURE_HEADER), self.secret)
            except WebhookSignatureError as e:
                return self._send_json(401, {"error": "invalid_signature", "reason": e.reason})

            LAST_REQUEST = {
                "path": self.path,
                "delivery_id": self.headers.get(DELIVERY_ID_HEADER),
                "attempt": self.headers.get(ATTEMPT_HEADER),
                "headers": {k.lower(): v for k, v in self.headers.items()},
                "payload": payload,
            }
            return self._send_json(200, {"status": "received"})

        return self._send_json(404, {"error": "not_found"})

    def log_message(self, format, *args):  # noqa: A003
        # Silence default logging to keep test output clean.
        return


def main() -> None:
    port = int(os.getenv("MOCK_PARTNER_PORT", "8080"))
    server = HTTPServer(("0.0.0.0", port), Handler)
    server.serve_forever()


if __name__ == "__main__":
    main()
