"""Client for the identity directory REST API (Microsoft Graph users)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from sigaudit.errors import AuthenticationError, DirectoryClientError
from sigaudit.schemas.overrides import is_blank
from sigaudit.schemas.profile import Profile
from sigaudit.services.auth import ClientCredentialsToken

logger = structlog.get_logger()

USER_SELECT = "id,displayName,jobTitle,department,mail,businessPhones,mobilePhone"
PAGE_SIZE = 999


def profile_from_graph(data: dict[str, Any]) -> Profile:
    """Map a Graph user object onto a Profile; first business phone wins."""
    phones = data.get("businessPhones") or []
    return Profile(
        id=data.get("id") or "",
        display_name=data.get("displayName") or "",
        job_title=data.get("jobTitle"),
        department=data.get("department"),
        mail=data.get("mail"),
        business_phone=phones[0] if phones else None,
        mobile_phone=data.get("mobilePhone"),
    )


def _quote(value: str) -> str:
    """OData string literal: single quotes are doubled."""
    return value.replace("'", "''")


class GraphDirectoryClient:
    """HTTP client for directory users, authenticated with app credentials."""

    def __init__(
        self,
        base_url: str,
        token: ClientCredentialsToken,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """GET returning the decoded body, or None for 404."""
        headers = await self.token.headers()
        async with self._client() as client:
            response = await client.get(url, headers=headers, params=params)
        if response.status_code == 404:
            return None
        if response.status_code == 401:
            self.token.invalidate()
        if response.status_code != 200:
            raise DirectoryClientError(f"Directory request failed: {response.status_code} {response.text}")
        return response.json()

    async def list_users(self) -> list[Profile]:
        """All enabled users that have a mail address, following nextLink paging."""
        url: str | None = f"{self.base_url}/users"
        params: dict[str, Any] | None = {
            "$select": USER_SELECT,
            "$filter": "accountEnabled eq true",
            "$top": PAGE_SIZE,
        }
        profiles: list[Profile] = []
        pages = 0
        try:
            while url:
                data = await self._get_json(url, params)
                if data is None:
                    break
                pages += 1
                for item in data.get("value", []):
                    if is_blank(item.get("mail")):
                        continue
                    profiles.append(profile_from_graph(item))
                # nextLink already carries the query string
                url = data.get("@odata.nextLink")
                params = None
        except (AuthenticationError, httpx.HTTPError) as exc:
            logger.error("directory_list_failed", error=str(exc))
            raise DirectoryClientError(f"Failed to list users: {exc}") from exc

        logger.info("directory_users_listed", count=len(profiles), pages=pages)
        return profiles

    async def get_user(self, user_id_or_email: str) -> Profile | None:
        try:
            data = await self._get_json(
                f"{self.base_url}/users/{user_id_or_email}", {"$select": USER_SELECT}
            )
        except (AuthenticationError, DirectoryClientError, httpx.HTTPError) as exc:
            logger.warning("directory_user_lookup_failed", lookup=user_id_or_email, error=str(exc))
            return None
        return profile_from_graph(data) if data else None

    async def get_user_by_email(self, email: str) -> Profile | None:
        literal = _quote(email)
        try:
            data = await self._get_json(
                f"{self.base_url}/users",
                {
                    "$select": USER_SELECT,
                    "$filter": f"mail eq '{literal}' or userPrincipalName eq '{literal}'",
                },
            )
        except (AuthenticationError, DirectoryClientError, httpx.HTTPError) as exc:
            logger.warning("directory_email_lookup_failed", email=email, error=str(exc))
            return None
        users = (data or {}).get("value", [])
        return profile_from_graph(users[0]) if users else None

    async def get_current_user(self) -> Profile | None:
        """The signed-in user; app-only tokens have none, so this is None there."""
        try:
            data = await self._get_json(f"{self.base_url}/me", {"$select": USER_SELECT})
        except (AuthenticationError, DirectoryClientError, httpx.HTTPError) as exc:
            logger.debug("directory_current_user_unavailable", error=str(exc))
            return None
        return profile_from_graph(data) if data else None

    async def update_user(
        self,
        user_id: str,
        job_title: str | None = None,
        department: str | None = None,
        business_phone: str | None = None,
        mobile_phone: str | None = None,
    ) -> bool:
        """Patch directory attributes; None leaves a value unchanged, "" clears it."""
        body: dict[str, Any] = {}
        if job_title is not None:
            body["jobTitle"] = job_title or None
        if department is not None:
            body["department"] = department or None
        if business_phone is not None:
            body["businessPhones"] = [business_phone] if business_phone else []
        if mobile_phone is not None:
            body["mobilePhone"] = mobile_phone or None
        if not body:
            return True

        try:
            headers = await self.token.headers()
            async with self._client() as client:
                response = await client.patch(f"{self.base_url}/users/{user_id}", headers=headers, json=body)
        except (AuthenticationError, httpx.HTTPError) as exc:
            raise DirectoryClientError(f"Failed to update user {user_id}: {exc}") from exc
        if response.status_code not in (200, 204):
            raise DirectoryClientError(
                f"Failed to update user {user_id}: {response.status_code} {response.text}"
            )
        logger.info("directory_user_updated", user_id=user_id, fields=sorted(body))
        return True

    async def test_connection(self) -> bool:
        """Test if the directory credentials work."""
        try:
            await self.token.get()
            return True
        except (AuthenticationError, httpx.HTTPError):
            return False
