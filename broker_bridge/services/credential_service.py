import asyncio
from typing import Optional

import httpx

from broker_bridge.logging_config import get_logger
from broker_bridge.services.result import ErrorCode, Result

logger = get_logger("credential_service")


class CredentialManager:
    """
    Owns the single bearer token shared by every broker call in the process.

    The token starts empty and is only replaced by a successful refresh.
    Concurrent refresh requests for the same stale token join one in-flight
    identity call instead of issuing their own.
    """

    def __init__(self, token_url: str, client_id: str, client_secret: str, timeout_seconds: float = 30.0):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout_seconds = timeout_seconds
        self._token: Optional[str] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def current(self) -> Optional[str]:
        return self._token

    def invalidate(self) -> None:
        """Forget the token so the next broker call goes out unauthenticated."""
        self._token = None

    async def authenticate(self) -> Result[str]:
        """Exchange client credentials for a new access token. Never retries."""
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Identity endpoint unreachable: {e}")
            return Result.failure(str(e), ErrorCode.TRANSPORT)

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(
                "Authentication rejected",
                extra={"context": {"status": response.status_code, "body": response.text[:500]}},
            )
            return Result.failure(
                f"Identity endpoint returned {response.status_code}",
                ErrorCode.AUTH,
                detail=response.text,
            )

        try:
            token = response.json().get("access_token")
        except (ValueError, AttributeError):
            token = None
        if not token:
            logger.error("Identity response has no access_token")
            return Result.failure("access_token missing from identity response", ErrorCode.INVALID_RESPONSE)

        logger.info("New broker token issued", extra={"context": {"access_token": token}})
        return Result.success(token)

    async def refresh(self, stale: Optional[str]) -> Result[str]:
        """Replace the token the caller saw rejected, sharing one refresh across callers."""
        if self._token is not None and self._token != stale:
            return Result.success(self._token)

        if self._inflight is None:
            self._inflight = asyncio.create_task(self._run_refresh())
        # A cancelled waiter must not cancel the refresh the others are waiting on.
        return await asyncio.shield(self._inflight)

    async def _run_refresh(self) -> Result[str]:
        try:
            result = await self.authenticate()
            if result.ok:
                self._token = result.value
            else:
                self.invalidate()
            return result
        finally:
            self._inflight = None
