"""Shared-secret check for webhook deliveries."""

from __future__ import annotations

import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .. import config

log = logging.getLogger(__name__)

# Paths that accept webhook deliveries
_WEBHOOK_PREFIXES = ("/index", "/api/index")
_SECRET_HEADERS = ("x-webhook-secret", "x-webhook-token")


class WebhookSecretMiddleware(BaseHTTPMiddleware):
    """Reject webhook calls without the configured secret.

    Disabled when ``WEBHOOK_SECRET`` is empty.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        expected = config.WEBHOOK_SECRET
        if not expected or not request.url.path.startswith(_WEBHOOK_PREFIXES):
            return await call_next(request)

        supplied = ""
        for name in _SECRET_HEADERS:
            supplied = request.headers.get(name, "")
            if supplied:
                break

        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            log.warning("Rejected webhook call to %s: bad secret", request.url.path)
            return JSONResponse({"ok": False, "error": "unauthorized"}, status_code=401)

        return await call_next(request)
