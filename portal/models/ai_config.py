"""Tutor settings: the administrator's syllabus/rules text."""
from datetime import datetime

from beanie import Document
from pydantic import BaseModel, Field


class AiConfig(BaseModel):
    context: str = ""


class AiConfigDocument(Document):
    """Single-doc tutor settings (MongoDB backend)."""

    context: str = ""
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "ai_config"
        use_state_management = True
