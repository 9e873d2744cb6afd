import base64
import hashlib
import hmac
from typing import Optional

import httpx

from broker_bridge.logging_config import get_logger
from broker_bridge.schemas.line import LineTextMessage
from broker_bridge.services.result import ErrorCode, Result

logger = get_logger("line_service")

# LINE rejects reply requests carrying more than five messages.
MAX_REPLY_MESSAGES = 5


class LineService:
    """Service for replying to LINE users and fetching message content."""

    API_URL = "https://api.line.me/v2/bot"
    DATA_URL = "https://api-data.line.me/v2/bot"

    def __init__(self, channel_access_token: str, timeout_seconds: float = 30.0):
        self.channel_access_token = channel_access_token
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.channel_access_token}"}

    async def reply(self, reply_token: Optional[str], messages: list[dict]) -> bool:
        """Send reply messages. Failures are logged, never raised."""
        if not reply_token:
            logger.warning("Reply skipped: event has no replyToken")
            return False
        if not messages:
            return False

        payload = {"replyToken": reply_token, "messages": messages}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    f"{self.API_URL}/message/reply",
                    json=payload,
                    headers={**self._headers(), "Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"LINE reply failed: {e}")
            return False

        if response.status_code != 200:
            logger.error(
                "LINE reply rejected",
                extra={"context": {"status": response.status_code, "body": response.text[:500]}},
            )
            return False

        logger.info("LINE reply sent", extra={"context": {"messages": len(messages)}})
        return True

    async def get_content(self, message_id: str, max_bytes: int = 0) -> Result[bytes]:
        """Download the binary content of an audio/image/video message."""
        url = f"{self.DATA_URL}/message/{message_id}/content"
        data = bytearray()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                async with client.stream("GET", url, headers=self._headers()) as response:
                    if response.status_code != 200:
                        return Result.failure(
                            f"LINE content request returned {response.status_code}", ErrorCode.DOWNLOAD
                        )
                    async for chunk in response.aiter_bytes():
                        data.extend(chunk)
                        if max_bytes and len(data) > max_bytes:
                            return Result.failure("content too large", ErrorCode.DOWNLOAD)
        except httpx.HTTPError as e:
            logger.error(f"LINE content download failed: {e}", extra={"context": {"message_id": message_id}})
            return Result.failure(str(e), ErrorCode.DOWNLOAD)

        if not data:
            return Result.failure("content is empty", ErrorCode.DOWNLOAD)

        logger.info("LINE content downloaded", extra={"context": {"message_id": message_id, "bytes": len(data)}})
        return Result.success(bytes(data))


def sign_body(body: bytes, channel_secret: str) -> str:
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(body: bytes, signature: Optional[str], channel_secret: str) -> bool:
    """Check the X-Line-Signature header against the raw request body."""
    if not channel_secret or not signature:
        return False
    return hmac.compare_digest(sign_body(body, channel_secret), signature.strip())


def text_messages(texts: list[str]) -> list[dict]:
    return [LineTextMessage(text=text).model_dump() for text in texts]


def build_image_unsupported_reply() -> list[dict]:
    return text_messages(["An image was received, but we are currently not prepared to process it."])
