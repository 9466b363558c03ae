import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from habitrat.core.logging import latency_bucket_ms, run_id_ctx_var
from habitrat.core.metrics import api_requests_total

logger = logging.getLogger("habitrat")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Give every API request a run_id.

    A caller-supplied x-request-id is reused so client and server logs line
    up; otherwise a fresh id is minted. The id is echoed on the response and
    bound to the logging context for the duration of the request.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        run_id = request.headers.get(self.header_name) or f"api-{uuid4().hex[:12]}"
        request.state.run_id = run_id
        token = run_id_ctx_var.set(run_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[self.header_name] = run_id
            api_requests_total.inc({"method": request.method, "status": str(response.status_code)})
            logger.info(
                "request.complete",
                extra={
                    "run_id": run_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status": response.status_code,
                    "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
                },
            )
            return response
        finally:
            run_id_ctx_var.reset(token)
