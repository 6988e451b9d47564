"""Process-local activity stores: in memory, or a JSON blob on disk."""
import logging
from typing import Optional

from pydantic import ValidationError

from portal.exceptions import ActivityNotFound
from portal.models.activity import Activity, ActivityFields, Attachment
from portal.services.blobs import BlobStore
from portal.stores.base import ActivityStore, AttachmentChange, apply_update, new_activity

logger = logging.getLogger(__name__)


class CollectionActivityStore(ActivityStore):
    """Whole-collection read/modify/write over a list kept in insertion order."""

    def _load(self) -> list[Activity]:
        raise NotImplementedError

    def _save(self, activities: list[Activity]) -> None:
        raise NotImplementedError

    async def list(self) -> list[Activity]:
        # sorted() is stable, so equal dates keep insertion order
        return sorted(self._load(), key=lambda a: a.date)

    async def create(self, fields: ActivityFields, attachment: Optional[Attachment] = None) -> Activity:
        activities = self._load()
        existing_ids = {a.id for a in activities}
        activity = new_activity(fields, attachment)
        while activity.id in existing_ids:
            activity = new_activity(fields, attachment)
        self._save([*activities, activity])
        logger.info(f"Created activity {activity.id} ({activity.type.value}: {activity.title})")
        await self._notify_changed()
        return activity

    async def update(self, activity_id: str, fields: ActivityFields, attachment: AttachmentChange = None) -> Activity:
        activities = self._load()
        for index, current in enumerate(activities):
            if current.id == activity_id:
                updated = apply_update(current, fields, attachment)
                activities[index] = updated
                self._save(activities)
                logger.info(f"Updated activity {activity_id}")
                await self._notify_changed()
                return updated
        raise ActivityNotFound(activity_id)

    async def remove(self, activity_id: str) -> None:
        activities = self._load()
        remaining = [a for a in activities if a.id != activity_id]
        if len(remaining) == len(activities):
            return
        self._save(remaining)
        logger.info(f"Removed activity {activity_id}")
        await self._notify_changed()


class InMemoryActivityStore(CollectionActivityStore):
    def __init__(self, activities: Optional[list[Activity]] = None):
        super().__init__()
        self._activities: list[Activity] = list(activities or [])

    def _load(self) -> list[Activity]:
        return [a.model_copy(deep=True) for a in self._activities]

    def _save(self, activities: list[Activity]) -> None:
        self._activities = [a.model_copy(deep=True) for a in activities]


class LocalActivityStore(CollectionActivityStore):
    """Activities as one JSON array under `key` in a blob store.

    Expired rows are left in place; expiry is applied by the feed at read time.
    """

    def __init__(self, blobs: BlobStore, key: str = "activities"):
        super().__init__()
        self.blobs = blobs
        self.key = key

    def _load(self) -> list[Activity]:
        raw = self.blobs.read(self.key)
        if not raw:
            return []
        activities = []
        for row in raw:
            try:
                activities.append(Activity.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable activity row {row.get('id', '?')}: {e}")
        return activities

    def _save(self, activities: list[Activity]) -> None:
        self.blobs.write(self.key, [a.to_wire() for a in activities])
