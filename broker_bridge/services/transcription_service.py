from typing import Optional

import httpx

from broker_bridge.logging_config import get_logger
from broker_bridge.services.result import ErrorCode, Result

logger = get_logger("transcription_service")


class TranscriptionService:
    """OpenAI speech-to-text for LINE voice messages."""

    AUDIO_URL = "https://api.openai.com/v1/audio/transcriptions"

    def __init__(self, api_key: str, model: str = "whisper-1", timeout_seconds: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def transcribe(
        self,
        audio_bytes: bytes,
        *,
        filename: str = "audio.m4a",
        mime_type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Result[str]:
        """Transcribe audio to text. Every failure is a transcription_error result."""
        if not self.api_key:
            logger.warning("Audio transcription skipped: OPENAI_API_KEY missing")
            return Result.failure("OPENAI_API_KEY missing", ErrorCode.TRANSCRIPTION)
        if not audio_bytes:
            return Result.failure("audio is empty", ErrorCode.TRANSCRIPTION)

        files = {"file": (filename, audio_bytes, mime_type or "application/octet-stream")}
        data = {"model": self.model, "response_format": "text"}
        if language:
            data["language"] = language

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    self.AUDIO_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files=files,
                    data=data,
                )
        except httpx.HTTPError as e:
            logger.warning(f"Audio transcription failed: {e}")
            return Result.failure(str(e), ErrorCode.TRANSCRIPTION)

        logger.debug(f"OpenAI transcription status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"OpenAI transcription error: {response.text[:500]}")
            return Result.failure(
                f"OpenAI transcription error: {response.status_code}",
                ErrorCode.TRANSCRIPTION,
                detail=response.text,
            )

        transcript = (response.text or "").strip()
        if not transcript:
            logger.warning("OpenAI transcription returned empty text")
            return Result.failure("empty transcript", ErrorCode.TRANSCRIPTION)
        return Result.success(transcript)
