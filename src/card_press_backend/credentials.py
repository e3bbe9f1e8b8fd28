"""
Bearer token acquisition for the editing service.

``TokenProvider`` exchanges client credentials at the IMS token endpoint.
``CredentialCache`` holds the one process-wide credential and refreshes it
when it gets close to expiry; concurrent callers share a single refresh.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

import httpx
from omegaconf import DictConfig

from .errors import AuthError
from .models import BearerCredential

logger = logging.getLogger(__name__)


class SupportsGetToken(Protocol):
    async def get_token(self) -> BearerCredential: ...


class TokenProvider:
    """OAuth client-credentials grant against the IMS token endpoint."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str,
        lifetime_seconds: float = 3600,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.lifetime_seconds = lifetime_seconds
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

    @classmethod
    def from_config(cls, config: DictConfig, **kwargs) -> "TokenProvider":
        return cls(
            token_url=config.auth.token_url,
            client_id=config.auth.client_id,
            client_secret=config.auth.client_secret,
            scope=config.auth.scope,
            lifetime_seconds=config.auth.token_lifetime_seconds,
            timeout=config.editing.request_timeout_seconds,
            **kwargs,
        )

    async def get_token(self) -> BearerCredential:
        """
        Request a fresh access token.

        Raises:
            AuthError: If credentials are missing, rejected, or the endpoint is unreachable
        """
        if not self.client_id or not self.client_secret:
            raise AuthError("CLIENT_ID and CLIENT_SECRET must be configured")

        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self.token_url, data=form)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(f"Token request rejected ({exc.response.status_code}): {exc.response.text[:500]}")
            raise AuthError(
                "Failed to get access token",
                {"status": exc.response.status_code, "body": exc.response.text[:500]},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(f"Token request failed: {exc}")
            raise AuthError("Failed to get access token", {"error": str(exc)}) from exc

        try:
            body = resp.json()
        except ValueError as exc:
            logger.error(f"Token response was not JSON: {resp.text[:500]}")
            raise AuthError("Token response was not JSON", {"body": resp.text[:500]}) from exc
        if not isinstance(body, dict):
            raise AuthError("Token response was not a JSON object", {"body": body})

        token = body.get("access_token")
        if not token:
            raise AuthError("Token response did not contain an access_token")

        logger.info("Obtained new access token")
        return BearerCredential(token=token, expires_at=self._clock() + self.lifetime_seconds)


class CredentialCache:
    """
    Process-wide holder for the current bearer credential.

    The credential is fetched lazily and reused while
    ``now < expires_at - safety_margin``. Refresh happens under an
    ``asyncio.Lock`` and freshness is re-checked once the lock is held, so
    requests that race past expiry trigger one fetch between them.
    """

    def __init__(
        self,
        provider: SupportsGetToken,
        safety_margin: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self.safety_margin = safety_margin
        self._clock = clock
        self._credential: Optional[BearerCredential] = None
        self._lock = asyncio.Lock()

    def _fresh(self) -> Optional[BearerCredential]:
        credential = self._credential
        if credential is not None and credential.is_fresh(self._clock(), self.safety_margin):
            return credential
        return None

    async def get_token(self) -> str:
        credential = self._fresh()
        if credential is not None:
            return credential.token

        async with self._lock:
            credential = self._fresh()
            if credential is None:
                logger.info("Cached credential missing or near expiry; refreshing")
                credential = await self._provider.get_token()
                self._credential = credential
            return credential.token
