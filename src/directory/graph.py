"""Microsoft Graph backed DirectoryClient.

Covers only the calls the gateway core (identity, team role) and the built-in
tools need. Every request asks the token provider for a bearer token, so a
stale session is refreshed transparently by the SessionManager.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from src.constants import GRAPH_API_BASE
from src.directory.client import (
    ChannelInfo,
    DirectoryClient,
    MemberInfo,
    TeamInfo,
    UserIdentity,
)
from src.infra.errors import DirectoryError
from src.tools.base import PermissionLevel

logger = structlog.get_logger()

TokenProvider = Callable[[], Awaitable[str]]

_MEMBER_ODATA_TYPE = "#microsoft.graph.aadUserConversationMember"


def _role_to_level(roles: list[str]) -> PermissionLevel:
    lowered = {r.lower() for r in roles}
    if "owner" in lowered:
        return PermissionLevel.owner
    if "guest" in lowered:
        return PermissionLevel.guest
    return PermissionLevel.member


def _member_from_payload(item: dict[str, Any]) -> MemberInfo:
    roles = item.get("roles") or []
    level = _role_to_level(roles)
    return MemberInfo(
        user_id=item.get("userId") or item.get("id", ""),
        display_name=item.get("displayName") or "",
        email=item.get("email") or "",
        role=level.value.lower(),
        is_guest=level is PermissionLevel.guest,
    )


class GraphDirectoryClient(DirectoryClient):
    """DirectoryClient over the Graph v1.0 REST API."""

    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        base_url: str = GRAPH_API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport,
        )
        self._me: UserIdentity | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        token = await self._token_provider()
        try:
            response = await self._client.request(
                method, path, json=json, params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise DirectoryError(f"Graph request failed: {e}", status=503) from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("error", {}).get("message", "")
            except ValueError:
                detail = response.text
            logger.info(
                "graph_request_failed",
                method=method, path=path, status=response.status_code,
            )
            raise DirectoryError(detail or response.reason_phrase, status=response.status_code)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def get_current_user(self) -> UserIdentity:
        payload = await self._request(
            "GET", "/me", params={"$select": "id,displayName,userPrincipalName"},
        )
        self._me = UserIdentity(
            display_name=payload.get("displayName") or "",
            user_principal_name=payload.get("userPrincipalName") or "",
            user_id=payload.get("id") or "",
        )
        return self._me

    async def get_permission_level(self, team_id: str) -> PermissionLevel:
        me = self._me or await self.get_current_user()
        payload = await self._request(
            "GET",
            f"/teams/{team_id}/members",
            params={"$filter": f"(microsoft.graph.aadUserConversationMember/userId eq '{me.user_id}')"},
        )
        members = payload.get("value") or []
        if not members:
            return PermissionLevel.guest
        return _role_to_level(members[0].get("roles") or [])

    async def get_team(self, team_id: str) -> TeamInfo:
        payload = await self._request("GET", f"/teams/{team_id}")
        return TeamInfo(
            team_id=payload.get("id") or team_id,
            display_name=payload.get("displayName") or "",
            description=payload.get("description") or "",
        )

    async def list_channels(
        self, team_id: str, *, include_private: bool = False
    ) -> list[ChannelInfo]:
        payload = await self._request("GET", f"/teams/{team_id}/channels")
        channels = [
            ChannelInfo(
                channel_id=item.get("id", ""),
                display_name=item.get("displayName") or "",
                membership_type=(item.get("membershipType") or "standard").lower(),
                description=item.get("description") or "",
            )
            for item in payload.get("value") or []
        ]
        if include_private:
            return channels
        return [c for c in channels if c.membership_type != "private"]

    async def list_members(
        self, team_id: str, *, include_guests: bool = False
    ) -> list[MemberInfo]:
        payload = await self._request("GET", f"/teams/{team_id}/members")
        members = [_member_from_payload(item) for item in payload.get("value") or []]
        if include_guests:
            return members
        return [m for m in members if not m.is_guest]

    async def add_member(
        self, team_id: str, email: str, *, role: str = "member"
    ) -> MemberInfo:
        body = {
            "@odata.type": _MEMBER_ODATA_TYPE,
            "roles": ["owner"] if role == "owner" else [],
            "user@odata.bind": f"{GRAPH_API_BASE}/users('{email}')",
        }
        payload = await self._request("POST", f"/teams/{team_id}/members", json=body)
        return _member_from_payload(payload)

    async def cancel_meeting(
        self, meeting_id: str, *, comment: str = ""
    ) -> dict[str, Any]:
        await self._request("POST", f"/me/events/{meeting_id}/cancel", json={"comment": comment})
        return {"meetingId": meeting_id, "cancelled": True, "comment": comment}
