"""Activity store contract shared by every backend."""
from __future__ import annotations

import inspect
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from portal.exceptions import StoreUnavailable
from portal.models.activity import Activity, ActivityFields, Attachment

logger = logging.getLogger(__name__)


class _RemoveAttachment:
    """Explicit request to drop an activity's attachment on update."""

    def __repr__(self) -> str:
        return "REMOVE_ATTACHMENT"


REMOVE_ATTACHMENT = _RemoveAttachment()

# None keeps the current attachment, an Attachment replaces it, REMOVE_ATTACHMENT clears it.
AttachmentChange = Union[Attachment, _RemoveAttachment, None]
ChangeListener = Callable[[list[Activity]], Union[None, Awaitable[None]]]


def now_millis() -> int:
    return int(time.time() * 1000)


def new_activity(fields: ActivityFields, attachment: Optional[Attachment] = None, activity_id: Optional[str] = None) -> Activity:
    return Activity(
        id=activity_id or uuid.uuid4().hex,
        created_at=now_millis(),
        attachment=attachment,
        **fields.field_values(),
    )


def apply_update(existing: Activity, fields: ActivityFields, change: AttachmentChange = None) -> Activity:
    """New record with replaced mutable fields; `id` and `created_at` are kept."""
    updated = existing.with_fields(fields)
    if change is REMOVE_ATTACHMENT:
        updated.attachment = None
    elif isinstance(change, Attachment):
        updated.attachment = change
    return updated


def sort_key(activity: Activity) -> tuple:
    return (activity.date, activity.created_at)


class ActivityStore:
    """CRUD over activity records.

    `list` returns every stored record ordered by due date (ties by creation),
    with no expiry filtering. Writes are all or nothing. Any method may raise
    StoreUnavailable. Listeners receive the full stored list after a change.
    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    async def list(self) -> list[Activity]:
        raise NotImplementedError

    async def get(self, activity_id: str) -> Optional[Activity]:
        for activity in await self.list():
            if activity.id == activity_id:
                return activity
        return None

    async def create(self, fields: ActivityFields, attachment: Optional[Attachment] = None) -> Activity:
        raise NotImplementedError

    async def update(self, activity_id: str, fields: ActivityFields, attachment: AttachmentChange = None) -> Activity:
        raise NotImplementedError

    async def remove(self, activity_id: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)
        if len(self._listeners) == 1:
            self._on_first_listener()

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
                if not self._listeners:
                    self._on_last_listener()

        return unsubscribe

    def _on_first_listener(self) -> None:
        """Hook for push backends to start watching."""

    def _on_last_listener(self) -> None:
        """Hook for push backends to stop watching."""

    async def _dispatch(self, activities: list[Activity]) -> None:
        for listener in list(self._listeners):
            try:
                result: Any = listener(activities)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Activity change listener failed")

    async def _notify_changed(self) -> None:
        """Process-local backends call this after a successful write."""
        if not self._listeners:
            return
        try:
            activities = await self.list()
        except StoreUnavailable as e:
            # the write itself succeeded; listeners catch up on the next change
            logger.warning(f"Could not refresh activity listeners after a write: {e}")
            return
        await self._dispatch(activities)
