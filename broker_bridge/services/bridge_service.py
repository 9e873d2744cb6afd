"""
Session-correlation bridge.

Resolves a LINE user to the broker's session code, forwards one message,
keeps the stored code in sync with the broker and relays the answers.
A rejected credential is refreshed once and the call retried once; every
other failure drops the event with a log line and no reply.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from broker_bridge.logging_config import UserLogAdapter, get_logger
from broker_bridge.services.broker_service import BrokerClient
from broker_bridge.services.credential_service import CredentialManager
from broker_bridge.services.line_service import MAX_REPLY_MESSAGES, text_messages
from broker_bridge.services.result import ErrorCode
from broker_bridge.services.session_service import SessionStore

logger = get_logger("bridge_service")

MAX_ATTEMPTS = 2


class ReplyChannel(Protocol):
    async def reply(self, reply_token: Optional[str], messages: list[dict]) -> bool: ...


@dataclass
class BridgeOutcome:
    status: str  # delivered, dropped
    reason: Optional[str] = None
    session_code: Optional[str] = None
    messages_sent: int = 0

    @staticmethod
    def dropped(reason: str) -> "BridgeOutcome":
        return BridgeOutcome(status="dropped", reason=reason)


class SessionBridge:
    def __init__(
        self,
        store: SessionStore,
        credentials: CredentialManager,
        broker: BrokerClient,
        reply_channel: ReplyChannel,
    ):
        self.store = store
        self.credentials = credentials
        self.broker = broker
        self.reply_channel = reply_channel

    async def handle(self, platform_user_id: str, text: str, reply_token: Optional[str]) -> BridgeOutcome:
        """Run one user turn. Never raises."""
        log = UserLogAdapter(logger, platform_user_id)
        try:
            return await self._handle(platform_user_id, text, reply_token, log)
        except Exception as e:
            log.error(f"Unexpected bridge failure: {e}", exc_info=True)
            return BridgeOutcome.dropped(ErrorCode.UNEXPECTED)

    async def _handle(
        self,
        platform_user_id: str,
        text: str,
        reply_token: Optional[str],
        log: UserLogAdapter,
    ) -> BridgeOutcome:
        lookup = await self.store.lookup(platform_user_id)
        if not lookup.ok:
            log.warning("Session lookup failed, continuing without session", context={"error": lookup.error})
        known_code = lookup.unwrap_or("") or ""

        credential = self.credentials.current
        result = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            result = await self.broker.converse(known_code, platform_user_id, text, credential)
            if result.ok:
                break

            if result.is_error(ErrorCode.AUTH) and attempt < MAX_ATTEMPTS:
                log.warning("Broker rejected credential, re-authenticating", context={"attempt": attempt})
                refreshed = await self.credentials.refresh(credential)
                if not refreshed.ok:
                    log.error(
                        "Re-authentication failed, dropping event",
                        context={"error_code": refreshed.error_code, "error": refreshed.error},
                    )
                    return BridgeOutcome.dropped(ErrorCode.AUTH_REFRESH_FAILED)
                credential = refreshed.value
                continue

            log.error(
                f"Broker call failed: {result.error}",
                context={"attempt": attempt, "error_code": result.error_code, "detail": result.detail},
            )
            return BridgeOutcome.dropped(result.error_code or ErrorCode.UNEXPECTED)

        exchange = result.value
        if exchange.session_changed:
            recorded = await self.store.record(exchange.session_code, platform_user_id)
            if not recorded.ok:
                log.warning(
                    "Session code not persisted",
                    context={"session_code": exchange.session_code, "error": recorded.error},
                )

        answers = exchange.answers
        if not answers:
            log.info("Broker returned no answers")
            return BridgeOutcome(status="delivered", reason="no_answers", session_code=exchange.session_code)

        if len(answers) > MAX_REPLY_MESSAGES:
            log.warning(
                "Too many answers for one reply, truncating",
                context={"answers": len(answers), "sent": MAX_REPLY_MESSAGES},
            )
            answers = answers[:MAX_REPLY_MESSAGES]

        await self.reply_channel.reply(reply_token, text_messages(answers))
        return BridgeOutcome(status="delivered", session_code=exchange.session_code, messages_sent=len(answers))
