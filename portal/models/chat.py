"""Tutor transcript turns."""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ChatRole = Literal["user", "model"]


class ChatMessage(BaseModel):
    """One transcript turn.

    `is_loading` marks the placeholder of a turn still streaming; `is_error` a
    turn that failed; `is_notice` a synthetic line shown to the user (e.g. an
    auto-attached file) that is never sent back to the model.
    """

    model_config = ConfigDict(populate_by_name=True)

    role: ChatRole
    text: str
    is_error: bool = Field(default=False, alias="isError")
    is_loading: bool = Field(default=False, alias="isLoading")
    is_notice: bool = Field(default=False, alias="isNotice")

    @property
    def is_transient(self) -> bool:
        return self.is_error or self.is_loading or self.is_notice

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_defaults=True)


class ChatSubmit(BaseModel):
    text: str


class ChatStateOut(BaseModel):
    state: str
    demo_mode: bool
    messages: list[dict] = Field(default_factory=list)
