"""AWS S3: activity attachments stored by reference."""
import asyncio
import logging
import uuid

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from portal.config import settings
from portal.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

_s3 = None


def get_s3():
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
        )
    return _s3


def attachment_url(key: str) -> str:
    bucket = settings.s3_bucket_attachments
    return f"https://{bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"


def _upload_sync(body: bytes, key: str, content_type: str) -> None:
    get_s3().put_object(
        Bucket=settings.s3_bucket_attachments,
        Key=key,
        Body=body,
        ContentType=content_type,
    )


async def upload_attachment_to_s3(body: bytes, *, filename: str, content_type: str) -> tuple[str, str]:
    """Upload attachment; return (public_url, s3_key)."""
    ext = (filename or "").rsplit(".", 1)[-1] if "." in (filename or "") else "bin"
    key = f"attachments/{uuid.uuid4().hex}.{ext}"
    try:
        await asyncio.to_thread(_upload_sync, body, key, content_type)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"S3 upload failed for {filename}: {e}")
        raise StoreUnavailable("Attachment upload failed; check object storage connectivity.") from e
    return attachment_url(key), key
