"""aiohttp client for the TCN backend (canonical user and guild records)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional

import aiohttp

from shared.redaction import sanitize_text

from .errors import ApiError
from .models import GuildState, TcnUser
from .permissions import Permission

__all__ = ["TcnApiClient", "COMMITTEE_PATHS"]

log = logging.getLogger("tcn.roles.api")

COMMITTEE_PATHS = {
    Permission.EXEC: "execs",
    Permission.OBSERVER: "observers",
}


def _committee_path(committee: Permission) -> str:
    try:
        return COMMITTEE_PATHS[committee]
    except KeyError:
        raise ValueError(f"{committee!r} is not a committee flag") from None


class TcnApiClient:
    """Thin JSON client; every call is a single idempotent request."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "TcnApiClient":
        self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/json",
                },
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        session = self._session
        self._session = None
        if session is not None and self._owns_session and not session.closed:
            await session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Mapping[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Any:
        session = self._ensure_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, json=payload) as resp:
                if resp.status == 404 and allow_missing:
                    return None
                if resp.status >= 400:
                    detail = sanitize_text((await resp.text()).strip())
                    raise ApiError(resp.status, method, path, detail[:200])
                if resp.status == 204:
                    return None
                body = await resp.read()
                if not body:
                    return None
                return await resp.json(content_type=None)
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.warning(
                "tcn api request failed",
                extra={"method": method, "path": path, "error": repr(exc)},
            )
            raise ApiError(0, method, path, repr(exc)) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_user(self, user_id: str) -> Optional[TcnUser]:
        payload = await self._request("GET", f"/users/{user_id}", allow_missing=True)
        if not isinstance(payload, Mapping):
            return None
        return TcnUser.from_payload(payload)

    async def get_guild(self, guild_id: str) -> Optional[GuildState]:
        payload = await self._request("GET", f"/guilds/{guild_id}", allow_missing=True)
        if not isinstance(payload, Mapping):
            return None
        return GuildState.from_payload(payload)

    async def list_guilds(self) -> List[GuildState]:
        payload = await self._request("GET", "/guilds")
        if isinstance(payload, Mapping):
            payload = payload.get("guilds")
        if not isinstance(payload, list):
            raise ApiError(200, "GET", "/guilds", "unexpected guild list payload")
        return [GuildState.from_payload(entry) for entry in payload if isinstance(entry, Mapping)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def put_guild_permissions(self, user_id: str, guild_id: str, bits: int) -> None:
        await self._request(
            "PUT",
            f"/users/{user_id}/guilds",
            payload={"guild": guild_id, "roles": int(bits)},
        )

    async def add_committee(self, user_id: str, committee: Permission) -> None:
        await self._request(
            "PUT", f"/users/{_committee_path(committee)}", payload={"user": user_id}
        )

    async def remove_committee(self, user_id: str, committee: Permission) -> None:
        await self._request("DELETE", f"/users/{_committee_path(committee)}/{user_id}")

    async def patch_guild_holders(
        self,
        guild_id: str,
        *,
        voter: Optional[str],
        owner: Optional[str],
        advisor: Optional[str],
    ) -> None:
        await self._request(
            "PATCH",
            f"/guilds/{guild_id}",
            payload={"voter": voter, "owner": owner, "advisor": advisor},
        )
