"""
Request context middleware.

Binds two correlation ids for the lifetime of a request so every log line carries them:

- request_id: taken from X-Request-ID when the client sends one, generated otherwise
- learner_id: read from the /learners/{learner_id}/... path segment when present
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from mastery_core.logging_config import get_logger, learner_id_var, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000

_LEARNER_PATH = re.compile(r"/learners/([0-9a-fA-F-]{36})(?:/|$)")


def learner_from_path(path: str) -> Optional[str]:
    match = _LEARNER_PATH.search(path)
    return match.group(1).lower() if match else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Set correlation context vars, echo the request id and flag slow or failing requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        request_token = request_id_var.set(request_id)
        learner_token = learner_id_var.set(learner_from_path(request.url.path))

        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 1)
            response.headers[REQUEST_ID_HEADER] = request_id

            context = {
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            }
            if response.status_code >= 500:
                logger.error("Request failed", extra=context)
            elif duration_ms > SLOW_REQUEST_MS:
                # Lesson and exam generation dominate latency
                logger.warning("Slow request", extra=context)
            return response
        finally:
            learner_id_var.reset(learner_token)
            request_id_var.reset(request_token)
