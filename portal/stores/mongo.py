"""MongoDB activity store (Beanie documents)."""
import functools
import logging
from typing import Optional

from beanie import PydanticObjectId
from pymongo.errors import PyMongoError

from portal.exceptions import ActivityNotFound, StoreUnavailable
from portal.models.activity import Activity, ActivityDocument, ActivityFields, Attachment
from portal.stores.base import REMOVE_ATTACHMENT, ActivityStore, AttachmentChange, now_millis

logger = logging.getLogger(__name__)


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except Exception:
        return None


def _translate_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error(f"MongoDB unavailable during {func.__name__}: {e}")
            raise StoreUnavailable("Database is disconnected or still connecting; check backend connectivity.") from e

    return wrapper


class MongoActivityStore(ActivityStore):
    """Requires `portal.db.init_db()` to have registered ActivityDocument."""

    @_translate_errors
    async def list(self) -> list[Activity]:
        docs = await ActivityDocument.find_all().sort("+date", "+created_at").to_list()
        return [doc.to_activity() for doc in docs]

    @_translate_errors
    async def get(self, activity_id: str) -> Optional[Activity]:
        doc = await self._get_doc(activity_id)
        return doc.to_activity() if doc else None

    async def _get_doc(self, activity_id: str) -> Optional[ActivityDocument]:
        oid = safe_object_id(activity_id)
        if not oid:
            return None
        return await ActivityDocument.get(oid)

    @_translate_errors
    async def create(self, fields: ActivityFields, attachment: Optional[Attachment] = None) -> Activity:
        doc = ActivityDocument(
            title=fields.title,
            subject=fields.subject,
            description=fields.description,
            date=fields.date.isoformat(),
            type=fields.type,
            created_at=now_millis(),
            attachment=attachment,
        )
        await doc.insert()
        logger.info(f"Created activity {doc.id} ({doc.type.value}: {doc.title})")
        await self._notify_changed()
        return doc.to_activity()

    @_translate_errors
    async def update(self, activity_id: str, fields: ActivityFields, attachment: AttachmentChange = None) -> Activity:
        doc = await self._get_doc(activity_id)
        if not doc:
            raise ActivityNotFound(activity_id)
        doc.title = fields.title
        doc.subject = fields.subject
        doc.description = fields.description
        doc.date = fields.date.isoformat()
        doc.type = fields.type
        if attachment is REMOVE_ATTACHMENT:
            doc.attachment = None
        elif isinstance(attachment, Attachment):
            doc.attachment = attachment
        # single-document replace, applied atomically by MongoDB
        await doc.replace()
        logger.info(f"Updated activity {activity_id}")
        await self._notify_changed()
        return doc.to_activity()

    @_translate_errors
    async def remove(self, activity_id: str) -> None:
        doc = await self._get_doc(activity_id)
        if not doc:
            return
        await doc.delete()
        logger.info(f"Removed activity {activity_id}")
        await self._notify_changed()
