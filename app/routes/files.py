"""
Serves stored uploads with per-bucket access rules.
"""
import mimetypes

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, HTMLResponse

from app.auth_utils import require_user
from core.database import employer_can_view_resume
from core.storage import BUCKETS, resolve_path

router = APIRouter()


def can_read(user: dict, relative: str) -> bool:
    """
    verification-documents: owner and admins.
    resumes: owner, admins, and employers the seeker applied to with that file.
    avatars: any logged-in user.
    """
    parts = relative.split("/")
    if len(parts) < 3 or parts[0] not in BUCKETS or ".." in parts:
        return False
    bucket = parts[0]
    role = user.get("role")
    if role == "admin" or bucket == "avatars":
        return True

    owner = parts[2] if bucket == "verification-documents" else parts[1]
    is_owner = owner == str(user["id"])
    if bucket == "resumes":
        if is_owner:
            return True
        return role == "employer" and employer_can_view_resume(user["id"], relative)
    return is_owner


@router.get("/files/{path:path}")
def serve_file(request: Request, path: str):
    user, denied = require_user(request, allow_inactive=True)
    if denied:
        return denied
    if not can_read(user, path):
        return HTMLResponse("Not found", status_code=404)
    target = resolve_path(path)
    if target is None or not target.is_file():
        return HTMLResponse("Not found", status_code=404)
    media_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
    return FileResponse(target, media_type=media_type)
