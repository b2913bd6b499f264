"""
Local file storage for uploads, split into named buckets under UPLOAD_DIR.

Stored paths are relative ("<bucket>/<prefix>/<name>") so they can be saved
in the database and served back through /files/.
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from core.errors import ValidationError

log = logging.getLogger("storage")

BUCKETS = {
    "resumes": {".pdf", ".doc", ".docx"},
    "verification-documents": {".pdf", ".jpg", ".jpeg", ".png"},
    "avatars": {".jpg", ".jpeg", ".png"},
}


def upload_root() -> Path:
    return Path(os.getenv("UPLOAD_DIR", "./uploads")).resolve()


def max_upload_bytes() -> int:
    return int(os.getenv("MAX_UPLOAD_MB", "5")) * 1024 * 1024


def get_file_extension(filename: str) -> str:
    if "." not in (filename or ""):
        return ""
    return "." + filename.rsplit(".", 1)[1].lower()


def check_upload(bucket: str, filename: str, data: bytes) -> str:
    """Validate bucket, extension and size; returns the extension."""
    if bucket not in BUCKETS:
        raise ValueError(f"unknown bucket {bucket!r}")
    ext = get_file_extension(filename)
    if ext not in BUCKETS[bucket]:
        allowed = ", ".join(sorted(e.lstrip(".").upper() for e in BUCKETS[bucket]))
        raise ValidationError(f"Unsupported file type. Allowed: {allowed}")
    if not data:
        raise ValidationError("The uploaded file is empty.")
    limit = max_upload_bytes()
    if len(data) > limit:
        raise ValidationError(f"File too large. Maximum size: {limit // (1024 * 1024)}MB")
    return ext


def save_upload(bucket: str, prefix: str, filename: str, data: bytes) -> str:
    """Write `data` to <bucket>/<prefix>/<millis><ext> and return that relative path."""
    ext = check_upload(bucket, filename, data)
    relative = Path(bucket) / prefix / f"{int(time.time() * 1000)}{ext}"
    target = resolve_path(str(relative))
    if target is None:
        raise ValidationError("Invalid upload path.")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    log.info("Stored upload", extra={"path": str(relative), "bytes": len(data)})
    return relative.as_posix()


def resolve_path(relative: str) -> Optional[Path]:
    """Absolute path for a stored relative path, or None if it escapes UPLOAD_DIR."""
    root = upload_root()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate


def read_upload(relative: str) -> Optional[bytes]:
    path = resolve_path(relative)
    if path is None or not path.is_file():
        return None
    return path.read_bytes()


def delete_upload(relative: str) -> None:
    path = resolve_path(relative)
    if path is not None and path.is_file():
        path.unlink()


__all__ = [
    "BUCKETS",
    "upload_root",
    "max_upload_bytes",
    "get_file_extension",
    "check_upload",
    "save_upload",
    "resolve_path",
    "read_upload",
    "delete_upload",
]
