"""Read-only ledger query endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ledger"])


@router.get("/api/query-health-data")
def query_health_data(request: Request):
    """All health assets on the ledger (GetAllHealthAssets)."""
    gateway = request.app.state.gateway
    try:
        assets = gateway.list_assets()
    except LedgerError as e:
        logger.error("[LEDGER_QUERY] Failed to query assets: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})

    logger.info("[LEDGER_QUERY] Returned %d assets", len(assets))
    return {"data": [a.to_dict() for a in assets]}
