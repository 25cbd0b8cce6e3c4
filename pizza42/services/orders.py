# pizza42/services/orders.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..auth import Claims
from ..errors import (
    BadRequest,
    EmailNotVerified,
    Forbidden,
    InternalError,
    MirrorError,
    TokenExpired,
    Unauthenticated,
)
from .order_history import build_order_history
from .order_store import OrderStore

logger = logging.getLogger(__name__)


class MirrorFetcher(Protocol):
    async def mirror_fetch(self, subject: str) -> List[Any]: ...


class MirrorSubmitter(Protocol):
    def submit(self, subject: str, record: Dict[str, Any]) -> bool: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _oid() -> str:
    return uuid.uuid4().hex


def _iso(dt: datetime) -> str:
    # 2026-10-19T15:45:12.345678Z, sortable and what the SPA already parses
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _display_date(dt: datetime) -> str:
    return f"{dt:%b} {dt.day}, {dt.year}"


def _display_time(dt: datetime) -> str:
    return dt.strftime("%I:%M %p")


class OrderService:
    def __init__(
        self,
        store: OrderStore,
        profile_store: Optional[MirrorFetcher] = None,
        mirror: Optional[MirrorSubmitter] = None,
        create_scope: str = "create:orders",
        read_scope: str = "read:orders",
        display_tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _now,
    ):
        self.store = store
        self.profile_store = profile_store
        self.mirror = mirror
        self.create_scope = create_scope
        self.read_scope = read_scope
        self.display_tz = display_tz
        self.clock = clock

    # --- write path ---------------------------------------------------------
    def create_order(self, claims: Optional[Claims], payload: Any) -> Dict[str, Any]:
        """
        Validate, build and store a new order, then queue it for mirroring.

        Checks run in a fixed order and the first failure wins. An empty
        items list is accepted here; the read path hides it.
        """
        now = self.clock()

        if claims is None:
            raise Unauthenticated("Invalid or missing access token")
        if not claims.subject:
            raise Unauthenticated("Token missing subject (sub)")
        if claims.expiry is None:
            raise Unauthenticated("Token missing expiry (exp)")
        if claims.expiry <= now.timestamp():
            raise TokenExpired("Access token has expired")
        if not claims.has(self.create_scope):
            raise Forbidden(f"Missing {self.create_scope} permission")
        if claims.email_verified is not True:
            raise EmailNotVerified()

        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise BadRequest("Order must include an items array")

        local = now.astimezone(self.display_tz)
        record = {
            "id": _oid(),
            "created_at": _iso(now),
            "date": _display_date(local),
            "time": _display_time(local),
            "items": items,
        }

        try:
            total = self.store.append(claims.subject, record)
        except Exception as e:
            logger.exception("could not store order for %s", claims.subject)
            raise InternalError() from e
        logger.info("order %s stored for %s (%d total)", record["id"], claims.subject, total)

        if self.mirror is not None:
            self.mirror.submit(claims.subject, record)
        return record

    # --- read path ----------------------------------------------------------
    async def list_orders(self, claims: Optional[Claims]) -> List[Dict[str, Any]]:
        """Local and mirrored orders merged, newest first, numbered oldest = 1."""
        if claims is None:
            raise Unauthenticated("Invalid or missing access token")
        if not claims.has(self.read_scope):
            raise Forbidden(f"Missing {self.read_scope} permission")
        if not claims.subject:
            raise BadRequest("Missing user identifier in token")

        local = self.store.list(claims.subject)
        mirrored = await self._fetch_mirrored(claims.subject)
        orders = build_order_history(local, mirrored)
        logger.debug(
            "orders for %s: %d local, %d mirrored, %d shown",
            claims.subject, len(local), len(mirrored), len(orders),
        )
        return orders

    async def _fetch_mirrored(self, subject: str) -> List[Any]:
        if self.profile_store is None:
            return []
        try:
            return list(await self.profile_store.mirror_fetch(subject))
        except MirrorError as e:
            logger.warning("could not fetch mirrored orders for %s: %s", subject, e)
        except Exception:
            logger.exception("unexpected error fetching mirrored orders for %s", subject)
        return []
