from typing import Optional

import httpx

from relaydesk.logging_config import get_logger

logger = get_logger("transcription_service")


class TranscriptionError(Exception):
    pass


class TranscriptionService:
    """OpenAI speech-to-text over plain HTTP."""

    AUDIO_URL = "https://api.openai.com/v1/audio/transcriptions"

    def __init__(self, api_key: Optional[str], model: str = "whisper-1", enabled: bool = True):
        self.api_key = api_key
        self.model = model
        self.enabled = enabled

    def transcribe(
        self,
        audio_bytes: bytes,
        filename: str = "voice.ogg",
        mime_type: Optional[str] = "audio/ogg",
        language: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> str:
        """Transcribe audio. Raises TranscriptionError on any failure."""
        if not self.enabled or not self.api_key:
            raise TranscriptionError("Transcription is not configured")
        if not audio_bytes:
            raise TranscriptionError("audio_bytes is empty")

        files = {"file": (filename or "audio", audio_bytes, mime_type or "application/octet-stream")}
        data = {"model": self.model, "response_format": "text"}
        if language:
            data["language"] = language

        try:
            with httpx.Client(timeout=timeout_seconds) as client:
                response = client.post(
                    self.AUDIO_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files=files,
                    data=data,
                )
        except httpx.HTTPError as e:
            raise TranscriptionError(f"OpenAI transcription request failed: {e}") from e

        logger.debug(f"OpenAI transcription status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"OpenAI transcription error: {response.text}")
            raise TranscriptionError(f"OpenAI transcription error: {response.status_code} - {response.text}")

        transcript = (response.text or "").strip()
        if not transcript:
            raise TranscriptionError("OpenAI transcription returned empty text")
        return transcript
