"""Client-credentials token acquisition shared by the directory and mailbox clients."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import structlog

from sigaudit.errors import AuthenticationError

logger = structlog.get_logger()

# Refresh this long before the advertised expiry
_EXPIRY_MARGIN = timedelta(minutes=2)


class ClientCredentialsToken:
    """Caches an app-only bearer token for one scope."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.transport = transport
        self.timeout = timeout
        self._token: str | None = None
        self._token_expiry: datetime | None = None

    def _valid(self) -> bool:
        if not self._token or self._token_expiry is None:
            return False
        return datetime.now(timezone.utc) < self._token_expiry - _EXPIRY_MARGIN

    async def _authenticate(self) -> str:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": self.scope,
                },
            )
            if response.status_code != 200:
                logger.error("token_request_failed", scope=self.scope, status_code=response.status_code)
                raise AuthenticationError(f"Authentication failed: {response.status_code} {response.text}")
            data = response.json()
            self._token = data.get("access_token", "")
            self._token_expiry = datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in", 3600)))
            logger.debug("token_acquired", scope=self.scope)
            return self._token

    async def get(self) -> str:
        if not self._valid():
            await self._authenticate()
        return self._token

    async def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {await self.get()}"}

    def invalidate(self) -> None:
        self._token = None
        self._token_expiry = None
