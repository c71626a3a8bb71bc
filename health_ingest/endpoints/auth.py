"""Broker authentication hook.

The broker calls this endpoint for every device connection attempt and
expects ``{"result": "allow"|"deny", "is_superuser": bool}``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

router = APIRouter(tags=["auth"])


class AuthRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


@router.post("/api/authentication")
def authenticate(
    body: AuthRequest,
    request: Request,
    x_session_token: Optional[str] = Header(default=None, alias="X-Session-Token"),
):
    gate = request.app.state.auth_gate
    decision = gate.authenticate(body.username, body.password, session_token=x_session_token)
    return decision.to_dict()
