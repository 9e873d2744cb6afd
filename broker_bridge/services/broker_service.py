from typing import Any, Optional

import httpx
from pydantic import ValidationError

from broker_bridge.logging_config import get_logger
from broker_bridge.schemas.broker import BrokerConversationResponse, ConversationExchange
from broker_bridge.services.result import ErrorCode, Result

logger = get_logger("broker_service")


class BrokerClient:
    """Stateless wrapper around the broker's per-bot conversation endpoint."""

    CONVERSATION_PATH = "/org/{org}/env/{env}/bot/{bot}/conversations/{session_code}"

    def __init__(
        self,
        base_url: str,
        org_uuid: str,
        env_uuid: str,
        bot_key: str,
        api_key: str,
        channel: str = "LINE2",
        locale: str = "es-ES",
        os_name: str = "Windows",
        os_version: str = "10",
        business_key: str = "USER-123",
        timeout_seconds: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.org_uuid = org_uuid
        self.env_uuid = env_uuid
        self.bot_key = bot_key
        self.api_key = api_key
        self.channel = channel
        self.locale = locale
        self.os_name = os_name
        self.os_version = os_version
        self.business_key = business_key
        self.timeout_seconds = timeout_seconds

    def conversation_url(self, session_code: str) -> str:
        path = self.CONVERSATION_PATH.format(
            org=self.org_uuid,
            env=self.env_uuid,
            bot=self.bot_key,
            session_code=session_code or "",
        )
        return f"{self.base_url}{path}"

    def build_headers(self, user_id: str, credential: Optional[str]) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "API-KEY": self.api_key,
            "CHANNEL": self.channel,
            "OS": self.os_name,
            "USER-REF": user_id,
            "LOCALE": self.locale,
            "OS-VERSION": self.os_version,
            "BUSINESS-KEY": self.business_key,
        }
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    async def converse(
        self,
        session_code: str,
        user_id: str,
        text: str,
        credential: Optional[str],
    ) -> Result[ConversationExchange]:
        """Send one user message to the broker. 401, 5xx and network failures come back as failures."""
        url = self.conversation_url(session_code)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, json={"text": text}, headers=self.build_headers(user_id, credential))
        except httpx.RequestError as e:
            logger.error(
                f"Broker unreachable: {e}",
                extra={"context": {"user_id": user_id, "url": url}},
            )
            return Result.failure(str(e), ErrorCode.TRANSPORT)

        status = response.status_code
        logger.debug(f"Broker response status: {status}")

        if status == 401:
            return Result.failure("Broker rejected credential", ErrorCode.AUTH, detail=_body(response))

        if status >= 500:
            return Result.failure(f"Broker server error {status}", ErrorCode.SERVER, detail=_body(response))

        if status < 200 or status >= 300:
            return Result.failure(f"Broker request error {status}", ErrorCode.REQUEST, detail=_body(response))

        try:
            parsed = BrokerConversationResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Unparsable broker response: {e}", extra={"context": {"body": response.text[:500]}})
            return Result.failure(str(e), ErrorCode.INVALID_RESPONSE, detail=response.text)

        answers = [answer.content for answer in parsed.answers if answer.content]
        return Result.success(
            ConversationExchange(
                text=text,
                request_session_code=session_code or "",
                session_code=parsed.sessionCode or "",
                answers=answers,
            )
        )


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
