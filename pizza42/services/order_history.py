# pizza42/services/order_history.py
"""
Merge of locally cached orders with the copies mirrored into the profile
store, producing the numbered, newest-first history the SPA displays.

Mirrored entries are untrusted: older writers stored `order_id` instead of
`id`, some stored only `{order_id, created_at}`, and anything else may have
been edited by hand in the dashboard. Every field is parsed on its own and
a bad field never sinks the whole merge.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

DISPLAY_FIELDS = ("id", "created_at", "date", "time", "items")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    """A field that is either present with a value or absent with a reason."""

    value: Optional[T] = None
    reason: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.reason is None

    @classmethod
    def of(cls, value: T) -> "Parsed[T]":
        return cls(value=value)

    @classmethod
    def absent(cls, reason: str) -> "Parsed[T]":
        return cls(reason=reason)


@dataclass(frozen=True)
class MirroredEntry:
    id: Parsed[str]
    created_at: Parsed[str]
    date: Parsed[str]
    time: Parsed[str]
    items: Parsed[list]

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id.value,
            "created_at": self.created_at.value,
            "date": self.date.value,
            "time": self.time.value,
            "items": self.items.value,
        }


def _identifier(raw: Any) -> Parsed[str]:
    if isinstance(raw, bool):
        return Parsed.absent("not a string")
    if isinstance(raw, int):
        return Parsed.of(str(raw))
    if isinstance(raw, str):
        return Parsed.of(raw) if raw else Parsed.absent("empty")
    return Parsed.absent("missing" if raw is None else "not a string")


def _text(raw: Any) -> Parsed[str]:
    if raw is None:
        return Parsed.absent("missing")
    if not isinstance(raw, str):
        return Parsed.absent("not a string")
    return Parsed.of(raw)


def _items(raw: Any) -> Parsed[list]:
    if raw is None:
        return Parsed.absent("missing")
    if not isinstance(raw, list):
        return Parsed.absent("not a list")
    return Parsed.of(list(raw))


def parse_mirrored_entry(raw: Any) -> MirroredEntry:
    if not isinstance(raw, dict):
        gone: Parsed[Any] = Parsed.absent("entry is not an object")
        return MirroredEntry(gone, gone, gone, gone, gone)

    # `id` wins; `order_id` is what the earlier sample wrote
    ident = _identifier(raw.get("id"))
    if not ident.present:
        fallback = _identifier(raw.get("order_id"))
        if fallback.present:
            ident = fallback

    return MirroredEntry(
        id=ident,
        created_at=_text(raw.get("created_at")),
        date=_text(raw.get("date")),
        time=_text(raw.get("time")),
        items=_items(raw.get("items")),
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    s = value.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _sort_key(record: Dict[str, Any]) -> datetime:
    return parse_timestamp(record.get("created_at")) or _OLDEST


def _valid_item(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    qty = item.get("quantity")
    return isinstance(qty, int) and not isinstance(qty, bool) and qty > 0


def is_displayable(record: Dict[str, Any]) -> bool:
    items = record.get("items")
    if not isinstance(items, list) or not items:
        return False
    return all(_valid_item(i) for i in items)


def merge_order_history(
    local: Iterable[Dict[str, Any]],
    mirrored: Iterable[Any],
) -> List[Dict[str, Any]]:
    """
    Union of local and mirrored records, first occurrence of each id kept.

    Local records come first so they win any conflict: right after a write
    the local copy is the freshest one. Entries without any identifier
    cannot collide and are all kept.
    """
    merged: List[Dict[str, Any]] = []
    seen = set()

    def _add(record: Dict[str, Any]) -> None:
        oid = record.get("id")
        if oid is not None:
            if oid in seen:
                return
            seen.add(oid)
        merged.append(record)

    for rec in local:
        _add({k: rec.get(k) for k in DISPLAY_FIELDS})
    for raw in mirrored:
        _add(parse_mirrored_entry(raw).to_record())
    return merged


def number_orders(newest_first: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Oldest order gets #1; the result stays newest first."""
    oldest_first = list(reversed(newest_first))
    numbered = [{**o, "order_number": n} for n, o in enumerate(oldest_first, start=1)]
    numbered.reverse()
    return numbered


def build_order_history(
    local: Iterable[Dict[str, Any]],
    mirrored: Iterable[Any],
) -> List[Dict[str, Any]]:
    merged = merge_order_history(local, mirrored)
    # list.sort is stable with reverse=True, equal timestamps keep merge order
    merged.sort(key=_sort_key, reverse=True)
    visible = [r for r in merged if is_displayable(r)]
    return number_orders(visible)
