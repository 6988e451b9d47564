import datetime
import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ACTIVITY_BACKEND", "memory")
os.environ.setdefault("GEMINI_API_KEY", "")

import pytest

from portal.models.activity import ActivityFields, Attachment
from portal.services.attachments import encode
from portal.services.blobs import MemoryBlobStore
from portal.services.chat import ChatSessionManager
from portal.services.chat_history import ChatHistoryStore
from portal.services.feed import ActivityFeed
from portal.stores.ai_config import BlobAiConfigStore
from portal.stores.local import InMemoryActivityStore

TODAY = datetime.date(2024, 3, 11)
NOW = datetime.datetime(2024, 3, 11, 9, 30)


class FakeChatClient:
    """Scripted stand-in for the external chat API.

    Each entry of `replies` is a list of fragments, or an exception to raise
    after the fragments before it in a tuple: (["Hel"], RuntimeError("boom")).
    """

    def __init__(self, replies=None, fail_create=None):
        self.replies = list(replies or [])
        self.fail_create = fail_create
        self.sessions = []
        self.sent = []
        self.gate = None

    async def create_session(self, model, system_instruction, history):
        if self.fail_create is not None:
            raise self.fail_create
        session = {"model": model, "instruction": system_instruction, "history": list(history)}
        self.sessions.append(session)
        return session

    async def send_message_stream(self, session, message, attachment=None):
        self.sent.append({"session": session, "message": message, "attachment": attachment})
        reply = self.replies.pop(0) if self.replies else ["ok"]
        error = None
        if isinstance(reply, tuple):
            reply, error = reply
        for fragment in reply:
            if self.gate is not None:
                await self.gate.wait()
            yield fragment
        if error is not None:
            raise error


def make_fields(title="Midterm", subject="Marketing", date=TODAY, type="exam", description=""):
    return ActivityFields(title=title, subject=subject, date=date, type=type, description=description)


def make_attachment(name="midterm.pdf", data=b"%PDF-1.4 test", mime_type="application/pdf"):
    return Attachment(name=name, mime_type=mime_type, content=encode(data, mime_type))


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def store():
    return InMemoryActivityStore()


@pytest.fixture
def feed(store):
    return ActivityFeed(store, today=lambda: TODAY)


@pytest.fixture
def ai_config_store(blobs):
    return BlobAiConfigStore(blobs, "Syllabus: Kotler chapters 1-4.")


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def history(blobs):
    return ChatHistoryStore(blobs)


@pytest.fixture
def make_manager(feed, ai_config_store, chat_client, history):
    def factory(**overrides):
        kwargs = dict(
            feed=feed,
            ai_config_store=ai_config_store,
            client=chat_client,
            history=history,
            model="gemini-test",
            persona="You are a tutor.",
            clock=lambda: NOW,
        )
        kwargs.update(overrides)
        return ChatSessionManager(**kwargs)

    return factory
