"""HTTP surface of the health telemetry service.

Run:
    uvicorn health_ingest.main:app --port 3000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from health_common.config import get_settings

from .auth.gate import AuthGate
from .endpoints import auth_router, health_router, ledger_router
from .ledger.gateway import LedgerGateway
from .ledger.wallet import FileSystemWallet
from .receiver import TelemetryReceiver, start_receiver, stop_receiver

logger = logging.getLogger(__name__)


def create_app(
    receiver: Optional[TelemetryReceiver] = None,
    gateway: Optional[LedgerGateway] = None,
    auth_gate: Optional[AuthGate] = None,
    start_pipeline: bool = True,
) -> FastAPI:
    """Builds the app. Collaborators passed in are used as-is; otherwise
    the receiver is started from settings in the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        started_here = False
        if app.state.receiver is None and start_pipeline:
            app.state.receiver = start_receiver()
            started_here = True
        if app.state.gateway is None and app.state.receiver is not None:
            app.state.gateway = app.state.receiver.gateway
        if app.state.auth_gate is None:
            settings = get_settings()
            wallet = (
                app.state.receiver.wallet
                if app.state.receiver is not None
                else FileSystemWallet(settings.wallet_path)
            )
            app.state.auth_gate = AuthGate(settings.auth_username, settings.auth_password, wallet)
        try:
            yield
        finally:
            if started_here:
                stop_receiver()

    app = FastAPI(title="Health Telemetry Ingest", version="0.1.0", lifespan=lifespan)
    app.state.receiver = receiver
    app.state.gateway = gateway
    app.state.auth_gate = auth_gate

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(ledger_router)
    return app


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)

app = create_app()
