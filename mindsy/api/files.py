"""Authenticated file proxy for stored artifacts."""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from mindsy.api.deps import get_storage_service
from mindsy.auth.security import AuthenticatedUser, require_user
from mindsy.services.storage import StorageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["Files"])

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "txt": "text/plain",
    "md": "text/markdown",
    "json": "application/json",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
}


def content_type_for(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return CONTENT_TYPES.get(extension, "application/octet-stream")


def owns_path(user_id: str, path: str) -> bool:
    """Objects are keyed by owner: the first path segment is the user id."""
    segments = path.split("/")
    if ".." in segments:
        return False
    return len(segments) > 1 and segments[0] == user_id


def content_disposition(filename: str) -> str:
    """``attachment`` header with an ASCII fallback name and an RFC 5987 UTF-8 name."""
    fallback = "".join(
        c if c.isascii() and c.isprintable() and c not in "\"\\" else "_" for c in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


async def _serve(
    path: Optional[str],
    user: AuthenticatedUser,
    storage: StorageService,
    attachment: bool,
    filename: Optional[str] = None,
) -> Response:
    if not path:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File path is required")
    if not owns_path(user.id, path):
        logger.warning(f"User {user.id} denied access to {path}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    content = await storage.download_any(path)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    filename = filename or path.rsplit("/", 1)[-1]
    disposition = content_disposition(filename) if attachment else "inline"
    return Response(
        content=content,
        media_type=content_type_for(path),
        headers={
            "Content-Disposition": disposition,
            "Cache-Control": "private, max-age=3600",
        },
    )


@router.get(
    "/view",
    summary="View a stored file",
    description="Streams an object owned by the caller with an inline disposition.",
)
async def view_file(
    path: Optional[str] = Query(None, description="Object path in storage"),
    user: AuthenticatedUser = Depends(require_user),
    storage: StorageService = Depends(get_storage_service),
):
    return await _serve(path, user, storage, attachment=False)


@router.get(
    "/download",
    summary="Download a stored file",
    description="Same as /view but served as an attachment.",
)
async def download_file(
    path: Optional[str] = Query(None, description="Object path in storage"),
    filename: Optional[str] = Query(None, description="Name offered to the browser"),
    user: AuthenticatedUser = Depends(require_user),
    storage: StorageService = Depends(get_storage_service),
):
    return await _serve(path, user, storage, attachment=True, filename=filename)
