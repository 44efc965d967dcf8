from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from enum import Enum

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError
from fastapi import HTTPException

from app.core.config import settings

logger = logging.getLogger(__name__)


s3_client = boto3.client(
    "s3",
    endpoint_url=settings.s3_endpoint_url,
    aws_access_key_id=settings.s3_access_key,
    aws_secret_access_key=settings.s3_secret_key,
    region_name=settings.s3_region,
    config=Config(signature_version="s3v4"),
)

_bucket_checked = False


class StorageKind(str, Enum):
    MEDIA = "media"
    DOCUMENTS = "documents"


@dataclass(slots=True)
class IncomingFile:
    filename: str
    content_type: str
    data: bytes


@dataclass(slots=True)
class StoredFile:
    url: str
    key: str
    mime_type: str
    size: int


def ensure_bucket() -> None:
    global _bucket_checked
    if _bucket_checked:
        return

    try:
        s3_client.head_bucket(Bucket=settings.s3_bucket)
        _bucket_checked = True
        return
    except ClientError as exc:
        code = str(exc.response.get("Error", {}).get("Code", "")).lower()
        if code not in {"404", "nosuchbucket", "notfound"}:
            raise

    create_args = {"Bucket": settings.s3_bucket}
    region = str(settings.s3_region or "").strip()
    if region and region != "us-east-1":
        create_args["CreateBucketConfiguration"] = {"LocationConstraint": region}
    s3_client.create_bucket(**create_args)
    _bucket_checked = True


def make_public_url(object_key: str) -> str:
    base = settings.s3_endpoint_url.rstrip("/")
    return f"{base}/{settings.s3_bucket}/{object_key}"


def build_object_key(user_id: int, kind: StorageKind, subfolder: str, filename: str, mime_type: str) -> str:
    ext = ""
    if "." in filename:
        ext = "." + filename.rsplit(".", 1)[-1].lower()[:10]
    if not ext:
        ext = mimetypes.guess_extension(mime_type) or ""
    folder = subfolder.strip("/") or "misc"
    return f"users/{user_id}/{kind.value}/{folder}/{uuid.uuid4().hex}{ext}"


async def upload_file(user_id: int, file: IncomingFile, kind: StorageKind, subfolder: str) -> StoredFile:
    size_bytes = len(file.data)
    if size_bytes <= 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if size_bytes > settings.max_upload_size_bytes:
        raise HTTPException(status_code=413, detail=f"File too large (max {settings.max_upload_size_mb} MB)")

    mime_type = str(file.content_type or "application/octet-stream")
    object_key = build_object_key(user_id, kind, subfolder, file.filename or "", mime_type)

    ensure_bucket()
    s3_client.put_object(
        Bucket=settings.s3_bucket,
        Key=object_key,
        Body=file.data,
        ContentType=mime_type,
    )
    return StoredFile(url=make_public_url(object_key), key=object_key, mime_type=mime_type, size=size_bytes)


async def delete_file(key: str, user_id: int) -> None:
    if not key.startswith(f"users/{user_id}/"):
        raise HTTPException(status_code=403, detail="You can only delete your own files")
    ensure_bucket()
    s3_client.delete_object(Bucket=settings.s3_bucket, Key=key)
    logger.info("Deleted stored object", extra={"context": {"key": key, "user_id": user_id}})
