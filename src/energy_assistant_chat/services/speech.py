"""Speech recognition interface used for voice input."""

from abc import ABC, abstractmethod


class SpeechRecognitionError(Exception):
    """Raised when recognition fails or is aborted."""


class SpeechRecognizer(ABC):
    """A single-utterance speech recognizer."""

    @abstractmethod
    async def listen(self) -> str:
        """Listen for one utterance and return its transcript."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop listening; a pending listen() returns what was heard so far."""
        pass
