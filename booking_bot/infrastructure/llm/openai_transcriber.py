from __future__ import annotations

import logging

from openai import OpenAI, OpenAIError

from booking_bot.application.exceptions import TranscriptionError
from booking_bot.application.ports.transcriber import TranscriberPort

_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/aac": "aac",
    "audio/amr": "amr",
    "audio/wav": "wav",
    "audio/webm": "webm",
}


class OpenAITranscriber(TranscriberPort):
    """
    Whisper-backed adapter implementing TranscriberPort.

    Raises:
        TranscriptionError: provider failures or an empty transcript
    """

    def __init__(self, api_key: str, model: str = "whisper-1", language: str | None = "es") -> None:
        self.client = OpenAI(api_key=api_key)
        self._model = model
        self._language = language
        self._logger = logging.getLogger(__name__)

    def transcribe(self, content: bytes, mime_type: str) -> str:
        if not content:
            raise TranscriptionError("Empty audio payload")
        base_mime = (mime_type or "").split(";")[0].strip().lower()
        filename = f"voice.{_EXTENSIONS.get(base_mime, 'ogg')}"

        kwargs = {"model": self._model, "file": (filename, content, base_mime or "audio/ogg")}
        if self._language:
            kwargs["language"] = self._language
        try:
            result = self.client.audio.transcriptions.create(**kwargs)
        except OpenAIError as e:
            raise TranscriptionError(f"OpenAI transcription failed: {e}") from e

        text = (getattr(result, "text", "") or "").strip()
        if not text:
            raise TranscriptionError("Transcription returned no text")
        self._logger.info("Audio transcribed", extra={"reason": f"{len(text)} chars"})
        return text
