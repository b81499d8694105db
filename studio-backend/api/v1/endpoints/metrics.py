"""
Metrics Endpoint

@.architecture
Incoming: api/v1/router.py, Prometheus scraper (HTTP GET) --- {HTTP requests to /v1/metrics}
Processing: metrics() --- {1 job: prometheus_export}
Outgoing: monitoring/metrics.py, Prometheus scraper --- {Prometheus text format}
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from api.dependencies import get_settings
from config.settings import Settings
from monitoring import get_registry

router = APIRouter(tags=["metrics"])


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics",
)
async def metrics(settings: Settings = Depends(get_settings)) -> PlainTextResponse:
    if not settings.monitoring.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics are disabled")
    return PlainTextResponse(
        get_registry().export_prometheus(),
        media_type="text/plain; version=0.0.4",
    )
