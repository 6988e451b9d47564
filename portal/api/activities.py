"""Activity board: exams, assignments, tasks and announcements with optional attachment."""
import logging

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import RedirectResponse, Response

from portal.api.deps import AdminOnly, Feed, Store
from portal.exceptions import ActivityValidationError
from portal.models.activity import ActivityCreate, ActivityFields, ActivityUpdate, Attachment
from portal.services.attachments import build_attachment, check_size, decode, is_data_url
from portal.stores import REMOVE_ATTACHMENT

logger = logging.getLogger(__name__)

router = APIRouter()


def _checked_attachment(attachment: Attachment | None) -> Attachment | None:
    """Inline attachments must decode and respect the size limit before anything is written."""
    if attachment is None or not is_data_url(attachment.content):
        return attachment
    try:
        _, data = decode(attachment.content)
    except ValueError as e:
        raise ActivityValidationError(str(e)) from e
    check_size(data)
    return attachment


async def _get_or_404(store, activity_id: str):
    activity = await store.get(activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    return activity


@router.get("/")
async def list_activities(store: Store, feed: Feed, include_expired: bool = False):
    if include_expired:
        activities = await store.list()
    else:
        activities = await feed.get_visible_activities()
    return [a.to_wire() for a in activities]


@router.get("/{activity_id}")
async def get_activity(activity_id: str, store: Store):
    activity = await _get_or_404(store, activity_id)
    return activity.to_wire()


@router.post("/", status_code=201)
async def create_activity(data: ActivityCreate, store: Store, admin: AdminOnly):
    attachment = _checked_attachment(data.attachment)
    activity = await store.create(ActivityFields(**data.field_values()), attachment)
    return activity.to_wire()


@router.put("/{activity_id}")
async def update_activity(activity_id: str, data: ActivityUpdate, store: Store, admin: AdminOnly):
    if data.remove_attachment:
        change = REMOVE_ATTACHMENT
    else:
        change = _checked_attachment(data.attachment)
    activity = await store.update(activity_id, ActivityFields(**data.field_values()), change)
    return activity.to_wire()


@router.delete("/{activity_id}")
async def delete_activity(activity_id: str, store: Store, admin: AdminOnly):
    await store.remove(activity_id)
    return {"success": True, "message": "Activity removed"}


@router.put("/{activity_id}/attachment")
async def upload_attachment(activity_id: str, store: Store, admin: AdminOnly, file: UploadFile = File(...)):
    activity = await _get_or_404(store, activity_id)
    content = await file.read()
    attachment = await build_attachment(file.filename or "attachment", content, file.content_type)
    updated = await store.update(activity_id, ActivityFields(**activity.field_values()), attachment)
    logger.info(f"Attached {attachment.name} ({len(content)} bytes) to activity {activity_id}")
    return updated.to_wire()


@router.delete("/{activity_id}/attachment")
async def remove_attachment(activity_id: str, store: Store, admin: AdminOnly):
    activity = await _get_or_404(store, activity_id)
    updated = await store.update(activity_id, ActivityFields(**activity.field_values()), REMOVE_ATTACHMENT)
    return updated.to_wire()


@router.get("/{activity_id}/attachment")
async def download_attachment(activity_id: str, store: Store):
    activity = await _get_or_404(store, activity_id)
    attachment = activity.attachment
    if attachment is None:
        raise HTTPException(status_code=404, detail="Activity has no attachment")
    if not is_data_url(attachment.content):
        return RedirectResponse(attachment.content)
    try:
        mime_type, data = decode(attachment.content)
    except ValueError:
        raise HTTPException(status_code=500, detail="Stored attachment is unreadable")
    return Response(
        content=data,
        media_type=attachment.mime_type or mime_type,
        headers={"Content-Disposition": f'attachment; filename="{attachment.name}"'},
    )
