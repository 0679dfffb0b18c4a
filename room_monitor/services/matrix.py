"""
Matrix client-server API access.
Only the calls the monitor needs: hierarchy listing, message sending and whoami.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from room_monitor.core.errors import (
    AccessDeniedError,
    MalformedResponseError,
    NotifyError,
    TransientFetchError,
)
from room_monitor.core.room import HierarchyEntry, HierarchyPage

logger = logging.getLogger(__name__)

CLIENT_V1 = "/_matrix/client/v1"
CLIENT_V3 = "/_matrix/client/v3"


class IMatrixClient(ABC):
    """
    Abstract interface for the chat-protocol capabilities
    consumed by the room monitor.
    """

    @abstractmethod
    async def get_hierarchy_page(self, space_id: str, from_token: Optional[str] = None) -> HierarchyPage:
        """
        Returns one page of the children of a space.
        Raises TransientFetchError, AccessDeniedError or MalformedResponseError.
        """
        pass

    @abstractmethod
    async def send_message(self, room_id: str, content: Dict[str, Any]) -> str:
        """
        Sends an m.room.message event and returns its event id.
        Raises NotifyError (or AccessDeniedError) on failure.
        """
        pass


def _segment(value: str) -> str:
    return quote(value, safe="")


class HttpMatrixClient(IMatrixClient):
    """Matrix client backed by httpx, authenticated with an access token."""

    def __init__(
        self,
        homeserver_url: str,
        access_token: str,
        timeout: float = 10.0,
        page_limit: int = 100,
    ):
        self.homeserver_url = homeserver_url.rstrip("/")
        self.timeout = timeout
        self.page_limit = page_limit
        self._headers = {"Authorization": f"Bearer {access_token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.homeserver_url}{path}"

        async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers) as client:
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code in (401, 403):
                    raise AccessDeniedError(f"{method} {path} refused with {status_code}") from e
                raise TransientFetchError(f"{method} {path} failed with {status_code}") from e
            except httpx.HTTPError as e:
                raise TransientFetchError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{method} {path} returned invalid JSON") from e

        if not isinstance(body, dict):
            raise MalformedResponseError(f"{method} {path} returned {type(body).__name__}, expected object")
        return body

    async def get_hierarchy_page(self, space_id: str, from_token: Optional[str] = None) -> HierarchyPage:
        # max_depth=1: sub-spaces are expanded by the caller, one listing per space
        params: Dict[str, Any] = {"limit": self.page_limit, "max_depth": 1}
        if from_token:
            params["from"] = from_token

        body = await self._request("GET", f"{CLIENT_V1}/rooms/{_segment(space_id)}/hierarchy", params=params)

        raw_rooms = body.get("rooms", [])
        if not isinstance(raw_rooms, list):
            raise MalformedResponseError(f"Hierarchy of {space_id} has a non-list 'rooms' field")

        entries: List[HierarchyEntry] = []
        for raw in raw_rooms:
            try:
                entries.append(HierarchyEntry.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping malformed hierarchy entry in %s: %s", space_id, e)

        next_batch = body.get("next_batch")
        return HierarchyPage(entries=entries, next_token=next_batch if isinstance(next_batch, str) else None)

    async def send_message(self, room_id: str, content: Dict[str, Any]) -> str:
        txn_id = uuid.uuid4().hex
        path = f"{CLIENT_V3}/rooms/{_segment(room_id)}/send/m.room.message/{txn_id}"

        try:
            body = await self._request("PUT", path, json=content)
        except (TransientFetchError, MalformedResponseError) as e:
            raise NotifyError(str(e)) from e

        return str(body.get("event_id", ""))

    async def whoami(self) -> str:
        """Returns the user id the access token belongs to."""
        body = await self._request("GET", f"{CLIENT_V3}/account/whoami")
        user_id = body.get("user_id")
        if not isinstance(user_id, str):
            raise MalformedResponseError("whoami response has no user_id")
        return user_id
