"""
Request correlation IDs.

Each request gets an ID (the client's X-Correlation-ID or a fresh UUID4).
It is echoed in the response header and stamped on every log record emitted
while the request is handled, so API logs for one resume request line up.
"""
import contextvars
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from resumegen.utils.logger import logger

CORRELATION_HEADER = "X-Correlation-ID"

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="")


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get()
        return True


def _elapsed_ms(start: float) -> int:
    return round((time.monotonic() - start) * 1000)


class CorrelationMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        token = correlation_id_var.set(cid)
        request_info = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "",
        }
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request.failed", extra={
                **request_info,
                "duration_ms": _elapsed_ms(start),
                "error": str(exc),
                "error_type": type(exc).__name__,
            })
            raise
        finally:
            correlation_id_var.reset(token)

        status = response.status_code
        # 4xx are expected (ineligible, not ready) but worth seeing
        log = logger.warning if status >= 400 else logger.info
        log("request.completed", extra={
            **request_info,
            "correlation_id": cid,
            "status": status,
            "duration_ms": _elapsed_ms(start),
        })

        response.headers[CORRELATION_HEADER] = cid
        return response
