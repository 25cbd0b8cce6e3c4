# pizza42/services/order_store.py
from __future__ import annotations

import threading
from typing import Any, Dict, List


class OrderStore:
    """
    Process-local order cache: subject -> orders, oldest first.

    Append-only and unbounded; nothing is persisted, so a restart starts
    empty. The lock matters because sync route handlers run on a thread pool.
    """

    def __init__(self) -> None:
        self._orders: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def append(self, subject: str, record: Dict[str, Any]) -> int:
        """Store a record and return how many orders the subject now has."""
        with self._lock:
            orders = self._orders.setdefault(subject, [])
            orders.append(record)
            return len(orders)

    def list(self, subject: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._orders.get(subject, ()))

    def count(self, subject: str) -> int:
        with self._lock:
            return len(self._orders.get(subject, ()))

    def subjects(self) -> List[str]:
        with self._lock:
            return list(self._orders)
