from __future__ import annotations

from abc import ABC, abstractmethod


class TranscriberPort(ABC):
    @abstractmethod
    def transcribe(self, content: bytes, mime_type: str) -> str:
        """Speech to text. Raises TranscriptionError."""
        raise NotImplementedError
