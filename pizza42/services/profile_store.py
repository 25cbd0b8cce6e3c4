# pizza42/services/profile_store.py
"""Auth0 Management API client for the order history kept in user_metadata."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..errors import MirrorError

logger = logging.getLogger(__name__)

ORDER_HISTORY_FIELD = "order_history"


class ProfileStoreClient:
    def __init__(
        self,
        domain: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    def _user_path(self, subject: str) -> str:
        # auth0|abc123 -> auth0%7Cabc123
        return f"/api/v2/users/{quote(subject, safe='')}"

    async def get_management_token(self, client: httpx.AsyncClient) -> str:
        """Client-credentials exchange for a short-lived Management API token."""
        if not (self.domain and self.client_id and self.client_secret):
            raise MirrorError("Management API credentials are not configured")

        resp = await client.post(
            "/oauth/token",
            json={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "audience": f"{self.base_url}/api/v2/",
                "grant_type": "client_credentials",
            },
        )
        resp.raise_for_status()
        body = resp.json()
        if not isinstance(body, dict):
            raise MirrorError(f"token endpoint returned {type(body).__name__}, expected an object")
        token = body.get("access_token")
        if not token:
            raise MirrorError("token endpoint returned no access_token")
        return token

    async def fetch_order_history(self, client: httpx.AsyncClient, token: str, subject: str) -> List[Any]:
        resp = await client.get(
            self._user_path(subject), headers={"Authorization": f"Bearer {token}"}
        )
        resp.raise_for_status()
        data = resp.json()
        metadata = data.get("user_metadata") if isinstance(data, dict) else None
        history = metadata.get(ORDER_HISTORY_FIELD) if isinstance(metadata, dict) else None
        if history is None:
            return []
        if not isinstance(history, list):
            raise MirrorError(f"{ORDER_HISTORY_FIELD} is {type(history).__name__}, expected a list")
        return history

    async def replace_order_history(
        self, client: httpx.AsyncClient, token: str, subject: str, entries: List[Any]
    ) -> None:
        resp = await client.patch(
            self._user_path(subject),
            json={"user_metadata": {ORDER_HISTORY_FIELD: entries}},
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()

    # --- mirror operations --------------------------------------------------
    async def mirror_fetch(self, subject: str) -> List[Any]:
        try:
            async with self._client() as client:
                token = await self.get_management_token(client)
                return await self.fetch_order_history(client, token, subject)
        except httpx.HTTPStatusError as exc:
            raise MirrorError(
                f"Management API error {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            # ValueError covers undecodable JSON bodies
            raise MirrorError(f"Management API request failed: {exc}") from exc

    async def mirror_append(self, subject: str, record: Dict[str, Any]) -> None:
        """
        Read-modify-write of the subject's order_history.

        There is no append primitive, so two concurrent appends for one
        subject can lose an update.
        """
        try:
            async with self._client() as client:
                token = await self.get_management_token(client)
                existing = await self.fetch_order_history(client, token, subject)
                await self.replace_order_history(
                    client, token, subject, [*existing, to_mirrored_entry(record)]
                )
        except httpx.HTTPStatusError as exc:
            raise MirrorError(
                f"Management API error {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise MirrorError(f"Management API request failed: {exc}") from exc
        logger.info("appended order %s to profile of %s", record.get("id"), subject)


def to_mirrored_entry(record: Dict[str, Any]) -> Dict[str, Any]:
    """Canonical shape written to user_metadata: the full record keyed by `id`."""
    return {
        "id": record["id"],
        "created_at": record["created_at"],
        "date": record.get("date"),
        "time": record.get("time"),
        "items": record.get("items"),
    }
