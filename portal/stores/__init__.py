"""Activity and tutor-settings stores, selected by configuration."""
import logging

from portal.config import Settings
from portal.services.blobs import BlobStore
from portal.stores.ai_config import AiConfigStore, BlobAiConfigStore, MongoAiConfigStore
from portal.stores.base import REMOVE_ATTACHMENT, ActivityStore, AttachmentChange
from portal.stores.local import InMemoryActivityStore, LocalActivityStore

logger = logging.getLogger(__name__)


def build_activity_store(settings: Settings, blobs: BlobStore) -> ActivityStore:
    backend = settings.activity_backend
    logger.info(f"Activity backend: {backend}")
    if backend == "memory":
        return InMemoryActivityStore()
    if backend == "local":
        return LocalActivityStore(blobs)
    if backend == "mongo":
        from portal.stores.mongo import MongoActivityStore

        return MongoActivityStore()
    if backend == "firestore":
        from portal.stores.firestore import FirestoreActivityStore, get_firestore_client

        client = get_firestore_client(settings.firebase_credentials_path)
        return FirestoreActivityStore(client, settings.firestore_collection)
    if backend == "remote":
        from portal.stores.remote import RemoteActivityStore

        return RemoteActivityStore(settings.remote_api_url)
    raise ValueError(f"Unknown activity backend: {backend}")


def build_ai_config_store(settings: Settings, blobs: BlobStore) -> AiConfigStore:
    if settings.activity_backend == "mongo":
        return MongoAiConfigStore(settings.default_ai_context)
    return BlobAiConfigStore(blobs, settings.default_ai_context)


__all__ = [
    "ActivityStore",
    "AiConfigStore",
    "AttachmentChange",
    "REMOVE_ATTACHMENT",
    "build_activity_store",
    "build_ai_config_store",
]
