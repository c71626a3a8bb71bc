"""Health, readiness and metrics endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

DEAD_LETTER_PREVIEW = 10


@router.get("/health")
def health():
    """Liveness probe: ok while the process runs."""
    return {"status": "ok"}


@router.get("/ready")
def ready(request: Request):
    """Readiness probe: bus connected and ledger reachable."""
    receiver = request.app.state.receiver
    if receiver is None:
        raise HTTPException(status_code=503, detail="not ready")

    bus_ok = receiver.bus.is_connected
    ledger_ok = receiver.gateway.ping()
    if not (bus_ok and ledger_ok):
        logger.warning("[READY] Not ready bus=%s ledger=%s", bus_ok, ledger_ok)
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}


@router.get("/health/pipeline")
def pipeline_health(request: Request):
    """Receiver counters plus the latest dead-lettered messages."""
    receiver = request.app.state.receiver
    if receiver is None:
        return {"status": "disabled"}
    return {
        **receiver.health_check(),
        "stats": receiver.stats,
        "dead_letters": receiver.dlq.get_recent(DEAD_LETTER_PREVIEW),
    }


@router.get("/metrics")
def metrics():
    """Prometheus exposition."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
