# pizza42/auth.py
"""Bearer-token verification and the claim set the order routes work with.

Verification itself is PyJWT's job: signature against the tenant JWKS,
issuer, audience and expiry. This module only adapts the decoded payload.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

import jwt
from fastapi import Header, HTTPException, Request

from .errors import TokenExpired, Unauthenticated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Claims:
    subject: Optional[str]
    expiry: Optional[float]
    permissions: FrozenSet[str] = frozenset()
    email_verified: Any = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], email_claim: str) -> "Claims":
        perms = set()
        raw_perms = payload.get("permissions")
        if isinstance(raw_perms, list):
            perms.update(p for p in raw_perms if isinstance(p, str))
        scope = payload.get("scope")
        if isinstance(scope, str):
            perms.update(scope.split())

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            exp = None

        sub = payload.get("sub")
        return cls(
            subject=sub if isinstance(sub, str) else None,
            expiry=exp,
            permissions=frozenset(perms),
            email_verified=payload.get(email_claim),
            raw=dict(payload),
        )

    def has(self, permission: str) -> bool:
        return permission in self.permissions


class TokenVerifier:
    def __init__(
        self,
        domain: str,
        audience: str,
        jwks_client: Optional[Any] = None,
        algorithms: Iterable[str] = ("RS256",),
    ):
        self.issuer = f"https://{domain}/"
        self.audience = audience
        self.algorithms = list(algorithms)
        # PyJWKClient caches the key set, so only the first token per key hits the network
        self._jwks = jwks_client or jwt.PyJWKClient(
            f"https://{domain}/.well-known/jwks.json", cache_keys=True
        )

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                # sub is optional here; the order service turns a missing one into 401/400
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except (jwt.PyJWKClientError, jwt.InvalidTokenError) as e:
            logger.info("token rejected: %s: %s", type(e).__name__, e)
            raise Unauthenticated("Invalid token")


def _bearer_token(authorization: str) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Authorization header must be 'Bearer <token>'")
    return token.strip()


def get_claims(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[Claims]:
    """
    Optional bearer auth: no header -> None, so the order service decides
    how to reject it. A header that is present but does not verify is a 401.
    """
    if not authorization:
        return None
    token = _bearer_token(authorization)
    state = request.app.state
    try:
        payload = state.verifier.verify(token)
    except Unauthenticated as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Claims.from_payload(payload, state.settings.email_verified_claim)


def require_claims(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Claims:
    claims = get_claims(request, authorization)
    if claims is None:
        raise HTTPException(status_code=401, detail=Unauthenticated.default_message)
    return claims
