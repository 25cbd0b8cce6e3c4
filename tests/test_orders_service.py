"""OrderService: the write-path checks and the read-path merge, without HTTP."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pizza42.auth import Claims
from pizza42.errors import (
    BadRequest,
    EmailNotVerified,
    Forbidden,
    TokenExpired,
    Unauthenticated,
)
from pizza42.services.order_store import OrderStore
from pizza42.services.orders import OrderService
from tests.conftest import EMAIL_CLAIM, make_payload

T0 = datetime(2026, 10, 19, 15, 45, 12, tzinfo=timezone.utc)


class StepClock:
    """Each call is one minute after the previous one."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = current + timedelta(minutes=1)
        return current


class RecordingMirror:
    def __init__(self):
        self.jobs = []

    def submit(self, subject, record):
        self.jobs.append((subject, record))
        return True


def _claims(**overrides) -> Claims:
    # expiry relative to the fake clock, not the wall clock
    overrides.setdefault("exp", int(T0.timestamp()) + 3600)
    return Claims.from_payload(make_payload(**overrides), EMAIL_CLAIM)


@pytest.fixture()
def service(profile_store):
    return OrderService(
        OrderStore(),
        profile_store=profile_store,
        mirror=RecordingMirror(),
        clock=StepClock(),
    )


MARGHERITA = {"items": [{"name": "Margherita", "quantity": 2}]}
BUFFALO = {"items": [{"name": "Buffalo", "quantity": 1}]}


# ---------- create_order ----------

def test_create_order_builds_record(service):
    record = service.create_order(_claims(exp=int(T0.timestamp()) + 60), MARGHERITA)
    assert record["created_at"] == "2026-10-19T15:45:12.000000Z"
    assert record["date"] == "Oct 19, 2026"
    assert record["time"] == "03:45 PM"
    assert record["items"] == MARGHERITA["items"]
    assert len(record["id"]) == 32


def test_create_order_appends_in_order_with_unique_ids(service):
    claims = _claims(exp=int(T0.timestamp()) + 3600)
    records = [service.create_order(claims, MARGHERITA) for _ in range(5)]

    stored = service.store.list("auth0|u1")
    assert [r["id"] for r in stored] == [r["id"] for r in records]
    assert len({r["id"] for r in records}) == 5


def test_create_order_submits_to_mirror(service):
    record = service.create_order(_claims(exp=int(T0.timestamp()) + 60), BUFFALO)
    assert service.mirror.jobs == [("auth0|u1", record)]


def test_create_order_accepts_empty_items(service):
    record = service.create_order(_claims(exp=int(T0.timestamp()) + 60), {"items": []})
    assert record["items"] == []
    assert service.store.count("auth0|u1") == 1


@pytest.mark.parametrize("claims, payload, error", [
    (None, MARGHERITA, Unauthenticated),
    (_claims(sub=None, exp=int(T0.timestamp()) + 60), MARGHERITA, Unauthenticated),
    (_claims(exp=int(T0.timestamp())), MARGHERITA, TokenExpired),
    (_claims(exp=int(T0.timestamp()) - 10), MARGHERITA, TokenExpired),
    (_claims(exp=int(T0.timestamp()) + 60, permissions=["read:orders"]), MARGHERITA, Forbidden),
    (_claims(exp=int(T0.timestamp()) + 60, **{EMAIL_CLAIM: False}), MARGHERITA, EmailNotVerified),
    (_claims(exp=int(T0.timestamp()) + 60, **{EMAIL_CLAIM: "true"}), MARGHERITA, EmailNotVerified),
    (_claims(exp=int(T0.timestamp()) + 60), {"items": "pizza"}, BadRequest),
    (_claims(exp=int(T0.timestamp()) + 60), None, BadRequest),
])
def test_create_order_rejections_leave_cache_unchanged(service, claims, payload, error):
    with pytest.raises(error):
        service.create_order(claims, payload)
    assert service.store.subjects() == []
    assert service.mirror.jobs == []


def test_expiry_is_checked_before_permissions(service):
    claims = _claims(exp=int(T0.timestamp()) - 1, permissions=[])
    with pytest.raises(TokenExpired):
        service.create_order(claims, MARGHERITA)


def test_permission_is_checked_before_email(service):
    claims = _claims(exp=int(T0.timestamp()) + 60, permissions=[], **{EMAIL_CLAIM: False})
    with pytest.raises(Forbidden) as exc:
        service.create_order(claims, MARGHERITA)
    assert not isinstance(exc.value, EmailNotVerified)


def test_claims_are_checked_before_payload(service):
    claims = _claims(exp=int(T0.timestamp()) + 60, **{EMAIL_CLAIM: False})
    with pytest.raises(EmailNotVerified) as exc:
        service.create_order(claims, {"items": "not a list"})
    assert exc.value.reason == "email_not_verified"


# ---------- list_orders ----------

def test_two_orders_are_numbered_by_age(service):
    claims = _claims(exp=int(T0.timestamp()) + 3600)
    margherita = service.create_order(claims, MARGHERITA)
    buffalo = service.create_order(claims, BUFFALO)

    orders = asyncio.run(service.list_orders(claims))

    assert [o["id"] for o in orders] == [buffalo["id"], margherita["id"]]
    assert [o["order_number"] for o in orders] == [2, 1]
    assert orders[0]["items"][0]["name"] == "Buffalo"


def test_list_orders_empty_for_new_subject(service):
    assert asyncio.run(service.list_orders(_claims())) == []


def test_list_orders_local_wins_over_mirrored(service, profile_store):
    claims = _claims(exp=int(T0.timestamp()) + 3600)
    record = service.create_order(claims, MARGHERITA)
    profile_store.histories["auth0|u1"] = [
        {"id": record["id"], "created_at": record["created_at"],
         "items": [{"name": "Stale", "quantity": 9}]},
    ]

    orders = asyncio.run(service.list_orders(claims))
    assert len(orders) == 1
    assert orders[0]["items"] == MARGHERITA["items"]


def test_list_orders_ignores_fetch_failure(service, profile_store):
    claims = _claims(exp=int(T0.timestamp()) + 3600)
    service.create_order(claims, MARGHERITA)
    profile_store.fail_fetch = True

    orders = asyncio.run(service.list_orders(claims))
    assert [o["order_number"] for o in orders] == [1]


def test_list_orders_ignores_unexpected_fetch_error(service, profile_store, monkeypatch):
    async def _boom(subject):
        raise RuntimeError("boom")
    monkeypatch.setattr(profile_store, "mirror_fetch", _boom)

    assert asyncio.run(service.list_orders(_claims())) == []


def test_list_orders_hides_empty_orders_without_using_a_number(service):
    claims = _claims(exp=int(T0.timestamp()) + 3600)
    first = service.create_order(claims, MARGHERITA)
    service.create_order(claims, {"items": []})
    third = service.create_order(claims, BUFFALO)

    orders = asyncio.run(service.list_orders(claims))
    assert [(o["id"], o["order_number"]) for o in orders] == [
        (third["id"], 2),
        (first["id"], 1),
    ]


def test_list_orders_requires_read_scope(service):
    with pytest.raises(Forbidden):
        asyncio.run(service.list_orders(_claims(permissions=["create:orders"])))


def test_list_orders_requires_claims(service):
    with pytest.raises(Unauthenticated):
        asyncio.run(service.list_orders(None))


def test_list_orders_requires_subject(service):
    with pytest.raises(BadRequest):
        asyncio.run(service.list_orders(_claims(sub=None)))


def test_orders_within_one_millisecond_keep_their_order(profile_store):
    ticks = iter([T0, T0 + timedelta(microseconds=300)])
    service = OrderService(OrderStore(), profile_store=profile_store, clock=lambda: next(ticks))
    claims = _claims()
    first = service.create_order(claims, MARGHERITA)
    second = service.create_order(claims, BUFFALO)

    assert second["created_at"] == "2026-10-19T15:45:12.000300Z"
    orders = asyncio.run(service.list_orders(claims))
    assert [(o["id"], o["order_number"]) for o in orders] == [
        (second["id"], 2),
        (first["id"], 1),
    ]
