"""Tutor chat: transcript, streamed replies, retry and reset."""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from portal.api.deps import Chat
from portal.config import settings
from portal.exceptions import StreamFailure
from portal.models.chat import ChatStateOut, ChatSubmit
from portal.services.chat import STREAM_ERROR_TEXT, ChatSessionManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _state(chat: ChatSessionManager) -> ChatStateOut:
    return ChatStateOut(state=chat.state.value, demo_mode=settings.demo_mode, messages=chat.messages())


@router.get("/", response_model=ChatStateOut)
async def get_chat(chat: Chat):
    return _state(chat)


@router.post("/initialize", response_model=ChatStateOut)
async def initialize_chat(chat: Chat):
    await chat.initialize()
    return _state(chat)


@router.post("/reset", response_model=ChatStateOut)
async def reset_chat(chat: Chat):
    await chat.reset()
    return _state(chat)


@router.post("/messages")
async def send_message(data: ChatSubmit, chat: Chat):
    if not data.text.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty")
    fragments = chat.stream(data.text)
    # Pull the first fragment here so ChatBusy / InitializationFailure become
    # proper HTTP errors before the streaming response starts.
    try:
        first = await anext(fragments)
    except StopAsyncIteration:
        first = ""
    except StreamFailure:
        first = None

    async def body():
        if first is None:
            yield STREAM_ERROR_TEXT
            return
        if first:
            yield first
        try:
            async for fragment in fragments:
                yield fragment
        except StreamFailure:
            yield "\n\n" + STREAM_ERROR_TEXT
        finally:
            await fragments.aclose()

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")
