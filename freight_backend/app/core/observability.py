"""
Observability middleware and logging setup.

Every request gets a correlation id (taken from X-Correlation-ID when the
gateway sends one) and one structured log line naming the calling actor.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("freight.http")


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``freight`` logger tree."""
    root = logging.getLogger("freight")
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        ))
        root.addHandler(handler)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "actor_id": request.headers.get("X-Actor-Id"),
            "actor_role": request.headers.get("X-Actor-Role"),
        }

        # 5xx are engine or storage failures; 4xx are caller mistakes
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, "%s %s -> %s (%sms) actor=%s",
                   request.method, request.url.path, response.status_code, duration_ms,
                   context["actor_id"], extra=context)

        return response
