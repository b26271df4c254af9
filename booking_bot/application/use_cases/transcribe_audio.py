from __future__ import annotations

import logging

from booking_bot.application.exceptions import NotificationError, TranscriptionError
from booking_bot.application.ports.message_platform import MessagePlatformPort
from booking_bot.application.ports.transcriber import TranscriberPort


class TranscribeAudioUseCase:
    def __init__(self, platform: MessagePlatformPort, transcriber: TranscriberPort | None) -> None:
        self._platform = platform
        self._transcriber = transcriber
        self._logger = logging.getLogger(__name__)

    def execute(self, audio_ref: str) -> str | None:
        """Text of a voice note, or None when it cannot be obtained."""
        if self._transcriber is None:
            self._logger.info("Audio received but no transcriber configured")
            return None
        try:
            content, mime_type = self._platform.download_media(audio_ref)
            text = self._transcriber.transcribe(content, mime_type).strip()
        except (NotificationError, TranscriptionError) as e:
            self._logger.warning("Audio transcription failed", extra={"error": str(e)})
            return None
        return text or None
