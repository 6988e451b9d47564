"""Tutor conversation: session lifecycle, streamed turns, auto-attach and reset."""
from __future__ import annotations

import asyncio
import datetime
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

import aiohttp

from portal.exceptions import ChatBusy, InitializationFailure, PortalError, StreamFailure
from portal.models.activity import Activity
from portal.models.ai_config import AiConfig
from portal.models.chat import ChatMessage
from portal.services.attachments import load_attachment
from portal.services.chat_history import ChatHistoryStore
from portal.services.context import build_message_preamble, build_system_instruction
from portal.services.feed import ActivityFeed
from portal.services.gemini import ChatClient, InlineAttachment
from portal.stores.ai_config import AiConfigStore
from portal.stores.base import sort_key

logger = logging.getLogger(__name__)

STREAM_ERROR_TEXT = "Sorry, the tutor is not responding right now. Please send your message again."


class ChatState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    STREAMING = "streaming"
    FAILED = "failed"


def seed_history(transcript: list[ChatMessage]) -> list[ChatMessage]:
    """Completed user/model exchanges only; error, loading, notice and blank turns are dropped."""
    turns = [m for m in transcript if not m.is_transient and m.text.strip()]
    seed: list[ChatMessage] = []
    pending_user: Optional[ChatMessage] = None
    for message in turns:
        if message.role == "user":
            pending_user = message
        elif pending_user is not None:
            seed.append(ChatMessage(role="user", text=pending_user.text))
            seed.append(ChatMessage(role="model", text=message.text))
            pending_user = None
    return seed


def match_attachment(activities: list[Activity], text: str) -> Optional[Activity]:
    """Activity with an attachment whose title or subject appears in `text`.

    With several matches the earliest due date wins, then the earliest created.
    """
    needle = (text or "").lower()
    matches = [
        a
        for a in activities
        if a.attachment is not None
        and any(label and label.lower() in needle for label in (a.title.strip(), a.subject.strip()))
    ]
    if not matches:
        return None
    return min(matches, key=sort_key)


class ChatSessionManager:
    """Owns one conversation with the external chat API.

    Activities and tutor settings are read when the session is opened and are
    not refreshed until the next (re)initialization. Turns are strictly
    sequential: a submission while another turn streams raises ChatBusy.
    """

    def __init__(
        self,
        *,
        feed: ActivityFeed,
        ai_config_store: AiConfigStore,
        client: ChatClient,
        history: ChatHistoryStore,
        model: str,
        persona: str,
        context_placement: str = "system",
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ):
        self.feed = feed
        self.ai_config_store = ai_config_store
        self.client = client
        self.history = history
        self.model = model
        self.persona = persona
        self.context_placement = context_placement
        self._clock = clock

        self.state = ChatState.UNINITIALIZED
        self.transcript: list[ChatMessage] = history.load()
        self.last_error: Optional[str] = None
        self._session: Any = None
        self._activities: list[Activity] = []
        self._ai_config: Optional[AiConfig] = None
        self.system_instruction: Optional[str] = None

    def messages(self) -> list[dict]:
        return [m.to_wire() for m in self.transcript]

    def _persist(self) -> None:
        try:
            self.history.save(self.transcript)
        except PortalError as e:
            logger.error(f"Could not save chat history: {e}")

    def _append(self, message: ChatMessage) -> ChatMessage:
        self.transcript.append(message)
        self._persist()
        return message

    async def _open_session(self) -> None:
        self._session = None
        try:
            activities = await self.feed.get_visible_activities()
            ai_config = await self.ai_config_store.get()
            if self.context_placement == "system":
                instruction = build_system_instruction(ai_config, activities, self._clock(), self.persona)
            else:
                instruction = self.persona
            session = await self.client.create_session(self.model, instruction, seed_history(self.transcript))
        except Exception as e:
            self.last_error = str(e) or e.__class__.__name__
            logger.exception("Tutor chat initialization failed")
            raise InitializationFailure(f"Could not initialize the tutor: {self.last_error}") from e
        self._activities = activities
        self._ai_config = ai_config
        self.system_instruction = instruction
        self._session = session
        self.last_error = None
        logger.info(f"Tutor session opened ({len(activities)} visible activities, {len(self.transcript)} stored turns)")

    async def initialize(self) -> None:
        """Open a session; on failure the state is FAILED and calling again retries."""
        if self.state in (ChatState.STREAMING, ChatState.INITIALIZING):
            raise ChatBusy("The tutor is busy; wait for the current answer to finish.")
        self.state = ChatState.INITIALIZING
        try:
            await self._open_session()
        except InitializationFailure:
            self.state = ChatState.FAILED
            raise
        self.state = ChatState.READY

    async def reset(self) -> None:
        """Forget the conversation (stored and in memory) and open a fresh session."""
        if self.state in (ChatState.STREAMING, ChatState.INITIALIZING):
            raise ChatBusy("The tutor is busy; wait for the current answer to finish.")
        self.history.clear()
        self.transcript = []
        self._session = None
        logger.info("Tutor conversation reset")
        await self.initialize()

    async def _inline_attachment(self, activity: Activity) -> Optional[InlineAttachment]:
        attachment = activity.attachment
        try:
            mime_type, data = await load_attachment(attachment)
        except (ValueError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not load attachment {attachment.name} of activity {activity.id}: {e}")
            return None
        return InlineAttachment(mime_type=mime_type, data=data, name=attachment.name)

    async def stream(self, text: str) -> AsyncIterator[str]:
        """Send one user message and yield the reply fragments in arrival order.

        Raises ChatBusy, InitializationFailure, or StreamFailure (after the
        placeholder turn has been turned into an error turn).
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Message must not be empty")
        if self.state in (ChatState.STREAMING, ChatState.INITIALIZING):
            raise ChatBusy("The tutor is still answering the previous message.")
        self.state = ChatState.STREAMING
        try:
            if self._session is None:
                try:
                    await self._open_session()
                except InitializationFailure:
                    self.state = ChatState.FAILED
                    raise

            self._append(ChatMessage(role="user", text=text))

            inline = None
            matched = match_attachment(self._activities, text)
            if matched is not None:
                inline = await self._inline_attachment(matched)
                if inline is not None:
                    self._append(
                        ChatMessage(
                            role="model",
                            text=f'Attached "{matched.attachment.name}" from "{matched.title}" to your question.',
                            is_notice=True,
                        )
                    )

            if self.context_placement == "system":
                outbound = text
            else:
                outbound = build_message_preamble(self._ai_config, self._activities, self._clock(), text)

            reply = self._append(ChatMessage(role="model", text="", is_loading=True))
            try:
                async for fragment in self.client.send_message_stream(self._session, outbound, inline):
                    reply.text += fragment
                    reply.is_loading = False
                    self._persist()
                    yield fragment
                if not reply.text:
                    # e.g. a reply blocked by safety filters
                    raise StreamFailure("The chat API returned an empty reply")
            except Exception as e:
                logger.exception("Tutor stream failed")
                reply.text = STREAM_ERROR_TEXT
                reply.is_error = True
                reply.is_loading = False
                self._persist()
                # handle may be corrupted; the next submission opens a new one
                self._session = None
                raise StreamFailure(str(e) or e.__class__.__name__) from e
        finally:
            if self.state == ChatState.STREAMING:
                self.state = ChatState.READY

    async def submit(self, text: str) -> ChatMessage:
        """Run a whole turn and return the final model turn (an error turn on stream failure)."""
        try:
            async for _ in self.stream(text):
                pass
        except StreamFailure:
            # already recorded as the error turn returned below
            pass
        return self.transcript[-1]
