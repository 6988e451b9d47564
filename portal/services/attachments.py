"""Attachment encoding: data URLs for inline storage, S3 URLs for object storage."""
import base64
import binascii
import logging
import mimetypes
import re
from typing import Optional
from urllib.parse import unquote_to_bytes

import aiohttp

from portal.config import settings
from portal.exceptions import ActivityValidationError
from portal.models.activity import Attachment

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
DOWNLOAD_TIMEOUT = aiohttp.ClientTimeout(total=30)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    if declared:
        return declared
    return mimetypes.guess_type(filename or "")[0] or DEFAULT_MIME_TYPE


def check_size(data: bytes, max_bytes: Optional[int] = None) -> None:
    limit = settings.max_attachment_bytes if max_bytes is None else max_bytes
    if len(data) > limit:
        raise ActivityValidationError(
            f"Attachment is too large ({len(data)} bytes); the maximum is {limit // 1024} KiB."
        )


def encode(data: bytes, mime_type: str, max_bytes: Optional[int] = None) -> str:
    """Encode file bytes as a self-describing data URL."""
    check_size(data, max_bytes)
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{payload}"


def is_data_url(content: str) -> bool:
    return (content or "").startswith("data:")


def decode(content: str) -> tuple[str, bytes]:
    """Inverse of `encode`: return (mime_type, bytes)."""
    match = _DATA_URL_RE.match(content or "")
    if not match:
        raise ValueError("Attachment content is not a data URL")
    mime_type = match.group("mime") or DEFAULT_MIME_TYPE
    payload = match.group("payload")
    if ";base64" not in match.group("params"):
        return mime_type, unquote_to_bytes(payload)
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError("Attachment payload is not valid base64") from e


async def build_attachment(filename: str, data: bytes, mime_type: Optional[str] = None) -> Attachment:
    """Turn an uploaded file into an Attachment according to `attachment_storage`."""
    mime_type = guess_mime_type(filename, mime_type)
    if settings.attachment_storage == "s3":
        from portal.services.s3 import upload_attachment_to_s3

        check_size(data)
        url, _key = await upload_attachment_to_s3(data, filename=filename, content_type=mime_type)
        return Attachment(name=filename, mime_type=mime_type, content=url)
    return Attachment(name=filename, mime_type=mime_type, content=encode(data, mime_type))


async def load_attachment(attachment: Attachment) -> tuple[str, bytes]:
    """Resolve attachment content to bytes, downloading URL content."""
    if is_data_url(attachment.content):
        mime_type, data = decode(attachment.content)
        return attachment.mime_type or mime_type, data
    async with aiohttp.ClientSession(timeout=DOWNLOAD_TIMEOUT) as session:
        async with session.get(attachment.content) as resp:
            resp.raise_for_status()
            data = await resp.read()
    logger.info(f"Downloaded attachment {attachment.name} ({len(data)} bytes)")
    return attachment.mime_type, data
