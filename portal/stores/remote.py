"""Activity store backed by a remote service implementing the /activities REST API."""
import logging
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from portal.exceptions import ActivityNotFound, ActivityValidationError, StoreUnavailable
from portal.models.activity import Activity, ActivityFields, Attachment
from portal.stores.base import REMOVE_ATTACHMENT, ActivityStore, AttachmentChange, sort_key

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=15)


class RemoteActivityStore(ActivityStore):
    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, json: Any = None) -> tuple[int, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, json=json) as resp:
                body = None
                if resp.content_type == "application/json":
                    body = await resp.json()
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error(f"Activity service unreachable ({method} {url}): {e}")
            raise StoreUnavailable() from e

        if status >= 500:
            logger.error(f"Activity service error {status} on {method} {url}: {body}")
            raise StoreUnavailable()
        if status == 400 or status == 422:
            detail = (body.get("error") or body.get("detail")) if isinstance(body, dict) else body
            raise ActivityValidationError(str(detail or "Invalid activity"))
        return status, body

    @staticmethod
    def _parse(row: dict) -> Activity:
        try:
            return Activity.model_validate(row)
        except ValidationError as e:
            raise StoreUnavailable(f"Activity service returned an unreadable record: {e}") from e

    @staticmethod
    def _payload(fields: ActivityFields) -> dict:
        return fields.model_dump(mode="json")

    async def list(self) -> list[Activity]:
        _, body = await self._request("GET", "/activities/")
        return sorted((self._parse(row) for row in body or []), key=sort_key)

    async def create(self, fields: ActivityFields, attachment: Optional[Attachment] = None) -> Activity:
        payload = self._payload(fields)
        if attachment is not None:
            payload["attachment"] = attachment.model_dump(by_alias=True)
        _, body = await self._request("POST", "/activities/", json=payload)
        activity = self._parse(body)
        logger.info(f"Created activity {activity.id} via {self.base_url}")
        await self._notify_changed()
        return activity

    async def update(self, activity_id: str, fields: ActivityFields, attachment: AttachmentChange = None) -> Activity:
        payload = self._payload(fields)
        if attachment is REMOVE_ATTACHMENT:
            payload["attachment"] = None
            payload["remove_attachment"] = True
        elif isinstance(attachment, Attachment):
            payload["attachment"] = attachment.model_dump(by_alias=True)
        status, body = await self._request("PUT", f"/activities/{activity_id}", json=payload)
        if status == 404 or not body:
            raise ActivityNotFound(activity_id)
        updated = self._parse(body)
        await self._notify_changed()
        return updated

    async def remove(self, activity_id: str) -> None:
        status, _ = await self._request("DELETE", f"/activities/{activity_id}")
        if status not in (200, 204, 404):
            logger.warning(f"Unexpected status {status} deleting activity {activity_id}")
        await self._notify_changed()
