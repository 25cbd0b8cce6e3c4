"""Shared fixtures: fake token verifier and profile store so tests never hit Auth0."""
from __future__ import annotations

import os
import time
from typing import Any, Dict, List

# Set dummy env vars BEFORE any app imports
os.environ.setdefault("AUTH0_DOMAIN", "pizza42.test.auth0.com")
os.environ.setdefault("AUTH0_AUDIENCE", "https://api.pizza42.test")
os.environ.setdefault("AUTH0_CLIENT_ID", "spa-client-id")
os.environ.setdefault("AUTH0_M2M_CLIENT_ID", "m2m-id")
os.environ.setdefault("AUTH0_M2M_CLIENT_SECRET", "m2m-secret")

import pytest

from pizza42.errors import MirrorError, TokenExpired, Unauthenticated

EMAIL_CLAIM = "https://pizza-fourty-two.com/email_verified"


def make_payload(**overrides) -> Dict[str, Any]:
    """A decoded access token for a verified customer with both order scopes."""
    payload = {
        "sub": "auth0|u1",
        "exp": int(time.time()) + 3600,
        "permissions": ["create:orders", "read:orders"],
        EMAIL_CLAIM: True,
    }
    payload.update(overrides)
    return {k: v for k, v in payload.items() if v is not None}


# ---------- Fakes ----------

class FakeVerifier:
    """token string -> decoded payload; 'expired' and unknown tokens fail."""

    def __init__(self):
        self.tokens: Dict[str, Dict[str, Any]] = {}

    def add(self, token: str, payload: Dict[str, Any]) -> str:
        self.tokens[token] = payload
        return token

    def verify(self, token: str) -> Dict[str, Any]:
        if token == "expired":
            raise TokenExpired()
        if token not in self.tokens:
            raise Unauthenticated("Invalid token")
        return self.tokens[token]


class FakeProfileStore:
    def __init__(self):
        self.histories: Dict[str, List[Any]] = {}
        self.appended: List[tuple] = []
        self.fail_fetch = False
        self.fail_append = False

    async def mirror_fetch(self, subject: str) -> List[Any]:
        if self.fail_fetch:
            raise MirrorError("management API unavailable")
        return list(self.histories.get(subject, []))

    async def mirror_append(self, subject: str, record: Dict[str, Any]) -> None:
        if self.fail_append:
            raise MirrorError("management API unavailable")
        self.appended.append((subject, record))
        self.histories.setdefault(subject, []).append(dict(record))


# ---------- Fixtures ----------

@pytest.fixture()
def verifier():
    return FakeVerifier()


@pytest.fixture()
def profile_store():
    return FakeProfileStore()


@pytest.fixture()
def app(verifier, profile_store):
    from pizza42.main import create_app
    from pizza42.services.order_store import OrderStore
    from pizza42.settings import Settings

    return create_app(
        Settings(),
        verifier=verifier,
        profile_store=profile_store,
        store=OrderStore(),
    )


@pytest.fixture()
def client(app):
    """FastAPI TestClient with startup/shutdown (so the mirror queue runs)."""
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth(verifier):
    """Register a token for the given claims and return request headers."""
    def _auth(token: str = "good", **overrides) -> Dict[str, str]:
        verifier.add(token, make_payload(**overrides))
        return {"Authorization": f"Bearer {token}"}
    return _auth
