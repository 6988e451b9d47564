"""Board activities: exams, assignments, tasks and announcements."""
import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActivityType(str, Enum):
    EXAM = "exam"
    ASSIGNMENT = "assignment"
    TASK = "task"
    ANNOUNCEMENT = "announcement"


# Names used by the first version of the board; accepted on input only.
LEGACY_TYPE_NAMES = {
    "prova": ActivityType.EXAM,
    "trabalho": ActivityType.ASSIGNMENT,
    "atividade": ActivityType.TASK,
    "aviso": ActivityType.ANNOUNCEMENT,
}


class Attachment(BaseModel):
    """File attached to an activity. `content` is a data URL or a download URL."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    mime_type: str = Field(alias="type")
    content: str = Field(alias="data")


class ActivityFields(BaseModel):
    """Mutable fields of an activity, as set by the administrator."""

    model_config = ConfigDict(extra="ignore")

    title: str
    subject: str
    description: str = ""
    date: datetime.date
    type: ActivityType

    def field_values(self) -> dict:
        """Only the mutable activity fields, also when called on a subclass."""
        return self.model_dump(include=set(ActivityFields.model_fields))

    @field_validator("title", "subject")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value):
        return value or ""

    @field_validator("type", mode="before")
    @classmethod
    def _legacy_type(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            return LEGACY_TYPE_NAMES.get(key, key)
        return value


class Activity(ActivityFields):
    """Stored activity record."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    created_at: int = Field(alias="createdAt")  # epoch milliseconds
    attachment: Optional[Attachment] = None

    def with_fields(self, fields: ActivityFields) -> "Activity":
        return self.model_copy(update=fields.field_values())

    def to_wire(self) -> dict:
        """JSON shape shared by the REST API and the JSON blob backends."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ActivityCreate(ActivityFields):
    attachment: Optional[Attachment] = None


class ActivityUpdate(ActivityFields):
    attachment: Optional[Attachment] = None
    remove_attachment: bool = False


class ActivityDocument(Document):
    """Activity document for the MongoDB backend."""

    title: str
    subject: str
    description: str = ""
    date: Indexed(str)  # YYYY-MM-DD
    type: ActivityType
    created_at: int
    attachment: Optional[Attachment] = None

    class Settings:
        name = "activities"
        use_state_management = True

    def to_activity(self) -> Activity:
        return Activity(
            id=str(self.id),
            title=self.title,
            subject=self.subject,
            description=self.description,
            date=self.date,
            type=self.type,
            created_at=self.created_at,
            attachment=self.attachment,
        )

