"""Cloud Firestore activity store with live snapshot subscription."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError

from portal.exceptions import ActivityNotFound, StoreUnavailable
from portal.models.activity import Activity, ActivityFields, Attachment
from portal.stores.base import ActivityStore, AttachmentChange, apply_update, new_activity, sort_key

logger = logging.getLogger(__name__)

_firebase_app = None


def get_firestore_client(credentials_path: str):
    global _firebase_app
    if _firebase_app is None:
        if credentials_path:
            cred = credentials.Certificate(credentials_path)
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            logger.warning("FIREBASE_CREDENTIALS_PATH not set. Using application default credentials.")
            _firebase_app = firebase_admin.initialize_app()
    return firestore.client(_firebase_app)


def _from_snapshot(doc) -> Optional[Activity]:
    data = doc.to_dict() or {}
    try:
        return Activity.model_validate({**data, "id": doc.id})
    except ValidationError as e:
        logger.warning(f"Skipping unreadable Firestore activity {doc.id}: {e}")
        return None


def _to_document(activity: Activity) -> dict:
    data = activity.to_wire()
    data.pop("id", None)
    return data


class FirestoreActivityStore(ActivityStore):
    """Activities in a Firestore collection. Blocking SDK calls run in a worker thread."""

    def __init__(self, client, collection: str = "activities"):
        super().__init__()
        self.client = client
        self.collection_name = collection
        self._watch = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._dispatch_tasks: set[asyncio.Task] = set()

    @property
    def collection(self):
        return self.client.collection(self.collection_name)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Firestore call failed: {e}")
            raise StoreUnavailable("Cloud backend is unreachable; check backend connectivity.") from e

    def _list_sync(self) -> list[Activity]:
        activities = [a for a in (_from_snapshot(doc) for doc in self.collection.stream()) if a]
        return sorted(activities, key=sort_key)

    async def list(self) -> list[Activity]:
        return await self._run(self._list_sync)

    async def get(self, activity_id: str) -> Optional[Activity]:
        snapshot = await self._run(self.collection.document(activity_id).get)
        return _from_snapshot(snapshot) if snapshot.exists else None

    async def create(self, fields: ActivityFields, attachment: Optional[Attachment] = None) -> Activity:
        ref = self.collection.document()
        activity = new_activity(fields, attachment, activity_id=ref.id)
        await self._run(ref.set, _to_document(activity))
        logger.info(f"Created activity {activity.id} ({activity.type.value}: {activity.title})")
        return activity

    async def update(self, activity_id: str, fields: ActivityFields, attachment: AttachmentChange = None) -> Activity:
        current = await self.get(activity_id)
        if not current:
            raise ActivityNotFound(activity_id)
        updated = apply_update(current, fields, attachment)
        # set() without merge replaces the whole document
        await self._run(self.collection.document(activity_id).set, _to_document(updated))
        logger.info(f"Updated activity {activity_id}")
        return updated

    async def remove(self, activity_id: str) -> None:
        await self._run(self.collection.document(activity_id).delete)
        logger.info(f"Removed activity {activity_id}")

    def _on_first_listener(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._watch = self.collection.on_snapshot(self._on_snapshot)

    def _on_last_listener(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None

    def _on_snapshot(self, col_snapshot, changes, read_time) -> None:
        # Called on the SDK's watch thread; hand the result to the event loop.
        activities = sorted((a for a in (_from_snapshot(doc) for doc in col_snapshot) if a), key=sort_key)
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_dispatch, activities)

    def _schedule_dispatch(self, activities: list[Activity]) -> None:
        # the loop only keeps weak references to tasks
        task = asyncio.get_running_loop().create_task(self._dispatch(activities))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)

    async def close(self) -> None:
        self._listeners.clear()
        self._on_last_listener()
