from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from habitrat.core.metrics import METRICS

# Prometheus text exposition format
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse)
def metrics_endpoint() -> PlainTextResponse:
    """Job, notification and request counters for the scraper. Process-local."""
    return PlainTextResponse(METRICS.export_prometheus(), headers={"content-type": CONTENT_TYPE})
