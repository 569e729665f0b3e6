from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError
from fastapi import HTTPException, UploadFile

from app.core.aws import s3_client
from app.core.settings import S

logger = logging.getLogger("media")

_s3 = s3_client()

FOLDERS = {"image": "content/images", "video": "content/videos"}


def media_kind(content_type: Optional[str]) -> str:
    ct = (content_type or "").lower()
    if ct.startswith("image/"):
        return "image"
    if ct.startswith("video/"):
        return "video"
    raise HTTPException(400, "Unsupported file type")


def using_local_storage() -> bool:
    return S.use_local_storage or not S.media_bucket


def _extension(file_name: Optional[str]) -> str:
    return os.path.splitext(file_name or "")[1].lower()[:10]


def _s3_url(key: str) -> str:
    if S.media_public_base_url:
        return f"{S.media_public_base_url}/{key}"
    return f"https://{S.media_bucket}.s3.{S.aws_region}.amazonaws.com/{key}"


def _store_local(file: UploadFile, kind: str, object_name: str) -> Dict[str, Any]:
    folder = FOLDERS[kind]
    target_dir = Path(S.local_media_dir) / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / object_name
    with target.open("wb") as fh:
        shutil.copyfileobj(file.file, fh)
    return {
        "key": f"{folder}/{object_name}",
        "url": f"/uploads/{folder}/{object_name}",
        "size": target.stat().st_size,
    }


def _store_s3(file: UploadFile, kind: str, object_name: str) -> Dict[str, Any]:
    key = f"{FOLDERS[kind]}/{object_name}"
    try:
        _s3.upload_fileobj(
            Fileobj=file.file,
            Bucket=S.media_bucket,
            Key=key,
            ExtraArgs={"ContentType": file.content_type or "application/octet-stream"},
        )
        head = _s3.head_object(Bucket=S.media_bucket, Key=key)
    except ClientError as exc:
        raise HTTPException(500, f"s3 error: {exc}") from exc
    return {"key": key, "url": _s3_url(key), "size": int(head.get("ContentLength", 0))}


def store_media(file: UploadFile) -> Dict[str, Any]:
    """
    Persist one uploaded file and describe it for a content document.

    Only the MIME type prefix is inspected; anything other than image/* or
    video/* is rejected before any bytes are written.
    """
    kind = media_kind(file.content_type)
    file_id = uuid.uuid4().hex
    object_name = f"{file_id}{_extension(file.filename)}"
    if using_local_storage():
        stored = _store_local(file, kind, object_name)
    else:
        stored = _store_s3(file, kind, object_name)

    media = {"type": kind, **stored}
    if kind == "video":
        # Thumbnails are produced out of band and land beside the video.
        media["thumbnail"] = stored["url"].rsplit("/", 1)[0] + f"/{file_id}_thumb.jpg"
    return media


def delete_media(media: Dict[str, Any]) -> None:
    key = media.get("key")
    if not key:
        return
    if using_local_storage():
        try:
            (Path(S.local_media_dir) / key).unlink()
        except FileNotFoundError:
            pass
        return
    try:
        _s3.delete_object(Bucket=S.media_bucket, Key=key)
    except ClientError:
        logger.warning("failed to delete media object %s", key, exc_info=True)


def store_all_or_nothing(files: List[UploadFile]) -> List[Dict[str, Any]]:
    for file in files:
        media_kind(file.content_type)

    stored: List[Dict[str, Any]] = []
    try:
        for file in files:
            stored.append(store_media(file))
    except Exception:
        for media in stored:
            delete_media(media)
        raise
    return stored
