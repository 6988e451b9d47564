"""External chat API: Gemini streaming chat, or a demo stand-in when no key is configured."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import google.generativeai as genai

from portal.config import Settings
from portal.models.chat import ChatMessage

logger = logging.getLogger(__name__)

DEMO_MESSAGE = (
    "**Demo mode**\n\n"
    "No API key was detected, so the tutor cannot answer yet.\n\n"
    "**For the administrator:** set `GEMINI_API_KEY` in the environment or in the `.env` file."
)


@dataclass
class InlineAttachment:
    mime_type: str
    data: bytes
    name: str = ""


class ChatClient:
    """Opens sessions and streams replies as a finite, non-restartable sequence of text fragments."""

    async def create_session(self, model: str, system_instruction: str, history: list[ChatMessage]) -> Any:
        raise NotImplementedError

    def send_message_stream(
        self, session: Any, message: str, attachment: Optional[InlineAttachment] = None
    ) -> AsyncIterator[str]:
        raise NotImplementedError


class GeminiChatClient(ChatClient):
    def __init__(self, api_key: str):
        genai.configure(api_key=api_key)

    async def create_session(self, model: str, system_instruction: str, history: list[ChatMessage]) -> Any:
        generative_model = genai.GenerativeModel(model_name=model, system_instruction=system_instruction or None)
        return generative_model.start_chat(
            history=[{"role": m.role, "parts": [m.text]} for m in history],
        )

    async def send_message_stream(
        self, session: Any, message: str, attachment: Optional[InlineAttachment] = None
    ) -> AsyncIterator[str]:
        content: list[Any] = [message]
        if attachment is not None:
            content.append({"mime_type": attachment.mime_type, "data": attachment.data})
        response = await session.send_message_async(content, stream=True)
        async for chunk in response:
            try:
                text = chunk.text
            except ValueError:
                # chunk without text parts (e.g. finish or safety metadata)
                continue
            if text:
                yield text


class DemoChatClient(ChatClient):
    """Used when no API key is configured; answers every message with a setup notice."""

    def __init__(self, delay: float = 1.0):
        self.delay = delay

    async def create_session(self, model: str, system_instruction: str, history: list[ChatMessage]) -> Any:
        return {"model": model, "demo": True}

    async def send_message_stream(
        self, session: Any, message: str, attachment: Optional[InlineAttachment] = None
    ) -> AsyncIterator[str]:
        await asyncio.sleep(self.delay)
        yield DEMO_MESSAGE


def build_chat_client(settings: Settings) -> ChatClient:
    if settings.demo_mode:
        logger.warning("No Gemini API key found. Tutor chat will run in DEMO mode.")
        return DemoChatClient()
    return GeminiChatClient(settings.gemini_api_key)
