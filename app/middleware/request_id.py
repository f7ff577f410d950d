import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, echo it back, and log timing per request."""

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error. request_id=%s path=%s", request_id, request.url.path)
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if self.log_requests:
            logger.info("request_id=%s %s %s -> %d (%.1f ms)",
                        request_id, request.method, request.url.path, response.status_code, elapsed_ms)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def add_request_id_middleware(app, log_requests: bool = True):
    """Register RequestIdMiddleware on a FastAPI app"""
    app.add_middleware(RequestIdMiddleware, log_requests=log_requests)
