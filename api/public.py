"""
Public routes: upload form, upload endpoint, viewer, gallery, health.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from slowapi import Limiter
from starlette.datastructures import UploadFile

from api.audit import AuditAction, log_audit
from api.bot_detection import is_bot, is_facebook_crawler
from api.common import (
    check_health,
    get_object_store,
    get_real_ip,
    get_request_id,
    get_video_store,
)
from api.errors import ERROR_MESSAGES, ObjectStoreError, UploadTooLargeError, format_size
from api.exception_utils import handle_api_exceptions
from api.object_store import ObjectStore
from api.rendering import render_gallery_page, render_home_page, render_viewer_page
from api.schemas import UploadResponse, VideoMetadata
from api.video_store import GALLERY_COLUMNS, VideoStore
from config import (
    MAX_UPLOAD_SIZE,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_STORAGE_URL,
    RATE_LIMIT_UPLOAD,
    RELATED_VIDEOS_LIMIT,
    UPLOAD_FORM_OVERHEAD,
)

logger = logging.getLogger(__name__)

# Rate limiter for the upload endpoint, keyed by client IP
limiter = Limiter(
    key_func=get_real_ip,
    storage_uri=RATE_LIMIT_STORAGE_URL if RATE_LIMIT_ENABLED else None,
    enabled=RATE_LIMIT_ENABLED,
)

router = APIRouter()


def validate_content_length(
    request: Request,
    max_size: int = MAX_UPLOAD_SIZE,
    form_overhead: int = UPLOAD_FORM_OVERHEAD,
) -> None:
    """
    Reject an upload early when its Content-Length cannot fit the file limit.

    Content-Length covers the whole multipart body, so form_overhead bytes
    are allowed on top of max_size for boundaries and metadata fields. The
    exact bound on the file itself is enforced while streaming, as it is for
    requests without a usable Content-Length.

    Raises:
        HTTPException: 413 if Content-Length exceeds max_size + form_overhead
    """
    content_length = request.headers.get("content-length")
    if not content_length:
        return
    try:
        length = int(content_length)
    except ValueError:
        return
    if length > max_size + form_overhead:
        raise HTTPException(
            status_code=413,
            detail=f"{ERROR_MESSAGES['too_large']}. Maximum upload size is {format_size(max_size)}",
        )


@router.get("/", response_class=HTMLResponse)
async def home():
    """Serve the upload form."""
    return HTMLResponse(render_home_page())


@router.post("/upload", response_model=UploadResponse)
@limiter.limit(RATE_LIMIT_UPLOAD)
@handle_api_exceptions(
    "video_upload",
    ERROR_MESSAGES["general"],
    error_map={
        UploadTooLargeError: (413, f"{ERROR_MESSAGES['too_large']}. Maximum upload size is {format_size(MAX_UPLOAD_SIZE)}"),
        ObjectStoreError: (500, ERROR_MESSAGES["storage"]),
    },
)
async def upload_video(
    request: Request,
    video_store: VideoStore = Depends(get_video_store),
    object_store: ObjectStore = Depends(get_object_store),
):
    """
    Accept a multipart upload: the file under `video` plus metadata fields.

    The file is streamed to the object store first, then the metadata row
    is inserted. If the insert fails the stored object is left behind and
    logged; there is no compensating delete.
    """
    validate_content_length(request, MAX_UPLOAD_SIZE, UPLOAD_FORM_OVERHEAD)

    form = await request.form()
    try:
        upload = form.get("video")
        if not isinstance(upload, UploadFile) or not upload.filename:
            raise HTTPException(status_code=400, detail=ERROR_MESSAGES["no_file"])

        metadata = VideoMetadata.model_validate(
            {key: value for key, value in form.multi_items() if not isinstance(value, UploadFile)}
        )

        key = object_store.generate_key(upload.filename)
        size = await object_store.upload(upload.file, key, upload.content_type, MAX_UPLOAD_SIZE)
    finally:
        await form.close()

    try:
        video_id = await video_store.create_video(key, metadata)
    except Exception as e:
        logger.error(f"Failed to save metadata for uploaded object {key}; the object is now orphaned: {e}")
        log_audit(
            AuditAction.VIDEO_UPLOAD,
            client_ip=get_real_ip(request),
            user_agent=request.headers.get("user-agent"),
            resource_name=key,
            success=False,
            error=str(e),
            request_id=get_request_id(request),
        )
        raise HTTPException(status_code=500, detail=ERROR_MESSAGES["database"]) from e

    logger.info(f"Video {video_id} uploaded as {key} ({format_size(size)})")
    log_audit(
        AuditAction.VIDEO_UPLOAD,
        client_ip=get_real_ip(request),
        user_agent=request.headers.get("user-agent"),
        resource_id=video_id,
        resource_name=key,
        details={"size": size, "description": metadata.description},
        request_id=get_request_id(request),
    )
    return JSONResponse(content=UploadResponse(success=True, url=f"/video/{video_id}").model_dump(exclude_none=True))


@router.get("/video/{video_id}", response_class=HTMLResponse)
@handle_api_exceptions("view_video", ERROR_MESSAGES["general"])
async def view_video(
    video_id: str,
    request: Request,
    video_store: VideoStore = Depends(get_video_store),
    object_store: ObjectStore = Depends(get_object_store),
):
    """
    Viewer page.

    Checks run in a fixed order: unknown id (404), bot denial when antibot
    is on (403), Facebook crawler redirect (no click counted), generic
    redirect (one click counted), and only then the page itself.
    """
    video = await video_store.get_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail=ERROR_MESSAGES["not_found"])

    user_agent = request.headers.get("user-agent")

    if video["use_antibot"] and is_bot(user_agent):
        logger.info(f"Denied bot on video {video_id}: {user_agent}")
        raise HTTPException(status_code=403, detail=ERROR_MESSAGES["forbidden"])

    if video["facebook_redirect_url"] and is_facebook_crawler(user_agent):
        return RedirectResponse(video["facebook_redirect_url"], status_code=302)

    if video["redirect_url"]:
        await video_store.increment_click_count(video_id)
        return RedirectResponse(video["redirect_url"], status_code=302)

    related = await video_store.sample_related(video_id, RELATED_VIDEOS_LIMIT)
    return HTMLResponse(render_viewer_page(video, object_store.public_url(video["filename"]), related))


@router.get("/videos", response_class=HTMLResponse)
@handle_api_exceptions("list_videos", ERROR_MESSAGES["general"])
async def list_videos(video_store: VideoStore = Depends(get_video_store)):
    """Gallery of every video, newest first."""
    rows = await video_store.list_videos(GALLERY_COLUMNS)
    return HTMLResponse(render_gallery_page(rows))


@router.get("/health")
async def health_check(
    video_store: VideoStore = Depends(get_video_store),
    object_store: ObjectStore = Depends(get_object_store),
):
    """
    Health check endpoint for monitoring and load balancers.

    Returns 503 if the database or the object store is unreachable.
    """
    result = await check_health(video_store, object_store)
    return JSONResponse(
        status_code=result["status_code"],
        content={
            "status": "healthy" if result["healthy"] else "unhealthy",
            "checks": result["checks"],
        },
    )
