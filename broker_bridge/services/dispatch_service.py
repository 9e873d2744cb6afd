from typing import Any

from pydantic import ValidationError

from broker_bridge.logging_config import get_logger
from broker_bridge.schemas.line import EventResult, LineEvent
from broker_bridge.services.bridge_service import SessionBridge
from broker_bridge.services.line_service import LineService, build_image_unsupported_reply
from broker_bridge.services.transcription_service import TranscriptionService

logger = get_logger("dispatch_service")


class EventDispatcher:
    """Classifies LINE webhook events and turns each into plain text for the bridge."""

    def __init__(
        self,
        bridge: SessionBridge,
        line: LineService,
        transcriber: TranscriptionService,
        audio_max_bytes: int = 0,
    ):
        self.bridge = bridge
        self.line = line
        self.transcriber = transcriber
        self.audio_max_bytes = audio_max_bytes

    async def dispatch(self, raw_event: Any) -> dict:
        """Process one event. Errors stay inside this event."""
        try:
            result = await self._dispatch(raw_event)
        except Exception as e:
            logger.error(f"Error handling event: {e}", exc_info=True)
            result = EventResult(status="dropped", reason="unexpected_error")
        return result.model_dump()

    async def _dispatch(self, raw_event: Any) -> EventResult:
        if not isinstance(raw_event, dict) or not raw_event.get("type"):
            logger.error("Invalid event or missing type", extra={"context": {"event": raw_event}})
            return EventResult(status="invalid", reason="missing_type")

        try:
            event = LineEvent.model_validate(raw_event)
        except ValidationError as e:
            logger.error(f"Malformed event: {e}", extra={"context": {"event": raw_event}})
            return EventResult(status="invalid", reason="malformed_event")

        user_id = event.user_id
        if not user_id:
            logger.error("Event missing userId in source", extra={"context": {"event": raw_event}})
            return EventResult(status="invalid", reason="missing_user_id")

        logger.info(
            "Received event",
            extra={
                "context": {
                    "type": event.type,
                    "message_type": event.message.type if event.message else None,
                    "user_id": user_id,
                }
            },
        )

        if event.type == "postback" and event.postback:
            if not event.postback.data:
                return EventResult(status="ignored", reason="empty_postback")
            return await self._to_bridge(user_id, event.postback.data, event.replyToken)

        if event.type == "message" and event.message:
            message = event.message
            if message.type == "text":
                if not message.text:
                    return EventResult(status="ignored", reason="empty_text")
                return await self._to_bridge(user_id, message.text, event.replyToken)
            if message.type == "image":
                sent = await self.line.reply(event.replyToken, build_image_unsupported_reply())
                return EventResult(status="replied", reason="image_unsupported" if sent else "reply_failed")
            if message.type == "audio":
                return await self._handle_audio(user_id, event)

            logger.info(f"Unsupported message type: {message.type}")
            return EventResult(status="ignored", reason=f"unsupported_message_type:{message.type}")

        logger.info(f"Unsupported event type: {event.type}")
        return EventResult(status="ignored", reason=f"unsupported_event_type:{event.type}")

    async def _handle_audio(self, user_id: str, event: LineEvent) -> EventResult:
        message_id = event.message.id
        if not message_id:
            return EventResult(status="invalid", reason="missing_message_id")

        content = await self.line.get_content(message_id, self.audio_max_bytes)
        if not content.ok:
            logger.error(
                f"Could not download audio: {content.error}",
                extra={"context": {"user_id": user_id, "message_id": message_id}},
            )
            return EventResult(status="dropped", reason=content.error_code)

        transcript = await self.transcriber.transcribe(
            content.value,
            filename=f"audio-{message_id}.m4a",
            mime_type="audio/m4a",
        )
        if not transcript.ok:
            logger.error(
                f"Could not transcribe audio: {transcript.error}",
                extra={"context": {"user_id": user_id, "message_id": message_id}},
            )
            return EventResult(status="dropped", reason=transcript.error_code)

        logger.info("Transcription result", extra={"context": {"user_id": user_id, "text": transcript.value}})
        return await self._to_bridge(user_id, transcript.value, event.replyToken)

    async def _to_bridge(self, user_id: str, text: str, reply_token: str | None) -> EventResult:
        outcome = await self.bridge.handle(user_id, text, reply_token)
        return EventResult(status=outcome.status, reason=outcome.reason)
