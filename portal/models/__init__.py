"""Beanie document models and Pydantic schemas."""
from portal.models.activity import (
    Activity,
    ActivityCreate,
    ActivityDocument,
    ActivityFields,
    ActivityType,
    ActivityUpdate,
    Attachment,
)
from portal.models.ai_config import AiConfig, AiConfigDocument
from portal.models.chat import ChatMessage, ChatStateOut, ChatSubmit

__all__ = [
    "Activity",
    "ActivityCreate",
    "ActivityDocument",
    "ActivityFields",
    "ActivityType",
    "ActivityUpdate",
    "Attachment",
    "AiConfig",
    "AiConfigDocument",
    "ChatMessage",
    "ChatStateOut",
    "ChatSubmit",
]
