# pizza42/routes/external.py
from __future__ import annotations
from fastapi import APIRouter, Depends, Request

from ..auth import Claims, require_claims
from ..schemas.orders import AuthConfigOut, ExternalOut

router = APIRouter(tags=["external"])


@router.get("/api/external", response_model=ExternalOut)
def external(claims: Claims = Depends(require_claims)):
    return {"msg": "Your access token was successfully validated!"}


@router.get("/auth_config.json", response_model=AuthConfigOut)
def auth_config(request: Request):
    """
    Public SPA config: what the browser needs to create its Auth0 client.
    Never includes the Management API credentials.
    """
    s = request.app.state.settings
    return {
        "domain": s.auth0_domain,
        "clientId": s.auth0_client_id,
        "audience": s.auth0_audience,
    }
