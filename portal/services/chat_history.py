"""Transcript persistence: the whole conversation as one keyed blob."""
import logging

from pydantic import ValidationError

from portal.models.chat import ChatMessage
from portal.services.blobs import BlobStore

logger = logging.getLogger(__name__)


class ChatHistoryStore:
    def __init__(self, blobs: BlobStore, key: str = "chat_history"):
        self.blobs = blobs
        self.key = key

    def load(self) -> list[ChatMessage]:
        raw = self.blobs.read(self.key)
        if not raw:
            return []
        try:
            return [ChatMessage.model_validate(item) for item in raw]
        except (ValidationError, TypeError) as e:
            logger.warning(f"Discarding unreadable chat history: {e}")
            return []

    def save(self, transcript: list[ChatMessage]) -> None:
        self.blobs.write(self.key, [m.to_wire() for m in transcript])

    def clear(self) -> None:
        self.blobs.delete(self.key)
