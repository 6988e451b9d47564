"""Tutor settings singleton: local blob or MongoDB document."""
import logging

from pymongo.errors import PyMongoError

from portal.exceptions import StoreUnavailable
from portal.models.ai_config import AiConfig, AiConfigDocument
from portal.services.blobs import BlobStore

logger = logging.getLogger(__name__)


class AiConfigStore:
    """`get` creates the record with the default context when it is absent."""

    def __init__(self, default_context: str):
        self.default_context = default_context

    async def get(self) -> AiConfig:
        raise NotImplementedError

    async def save(self, config: AiConfig) -> AiConfig:
        raise NotImplementedError


class BlobAiConfigStore(AiConfigStore):
    def __init__(self, blobs: BlobStore, default_context: str, key: str = "ai_config"):
        super().__init__(default_context)
        self.blobs = blobs
        self.key = key

    async def get(self) -> AiConfig:
        raw = self.blobs.read(self.key)
        if raw is None:
            return await self.save(AiConfig(context=self.default_context))
        return AiConfig.model_validate(raw)

    async def save(self, config: AiConfig) -> AiConfig:
        self.blobs.write(self.key, config.model_dump())
        return config


class MongoAiConfigStore(AiConfigStore):
    async def get(self) -> AiConfig:
        try:
            doc = await AiConfigDocument.find_one()
            if not doc:
                doc = AiConfigDocument(context=self.default_context)
                await doc.insert()
        except PyMongoError as e:
            logger.error(f"MongoDB unavailable reading tutor settings: {e}")
            raise StoreUnavailable() from e
        return AiConfig(context=doc.context)

    async def save(self, config: AiConfig) -> AiConfig:
        try:
            doc = await AiConfigDocument.find_one()
            if not doc:
                doc = AiConfigDocument(context=config.context)
                await doc.insert()
            else:
                doc.context = config.context
                await doc.save()
        except PyMongoError as e:
            logger.error(f"MongoDB unavailable saving tutor settings: {e}")
            raise StoreUnavailable() from e
        return AiConfig(context=doc.context)
