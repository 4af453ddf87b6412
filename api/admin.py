"""
Admin routes: landing page, video list, description edit, delete.

Every path under /admin is behind AdminAuthMiddleware, which runs before
routing; handlers here can assume an authenticated user in
request.state.admin_user.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from api.audit import AuditAction, log_audit
from api.common import get_object_store, get_real_ip, get_request_id, get_video_store
from api.errors import ERROR_MESSAGES, ObjectStoreError
from api.exception_utils import handle_api_exceptions
from api.object_store import ObjectStore
from api.rendering import render_admin_home_page, render_admin_list_page, render_edit_page
from api.video_store import ADMIN_LIST_COLUMNS, VideoStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


def _admin_user(request: Request):
    return getattr(request.state, "admin_user", None)


@router.get("", response_class=HTMLResponse)
async def admin_home():
    """Admin landing page."""
    return HTMLResponse(render_admin_home_page())


@router.get("/videos", response_class=HTMLResponse)
@handle_api_exceptions("admin_list_videos", ERROR_MESSAGES["general"])
async def admin_list_videos(video_store: VideoStore = Depends(get_video_store)):
    rows = await video_store.list_videos(ADMIN_LIST_COLUMNS)
    return HTMLResponse(render_admin_list_page(rows))


@router.get("/videos/{video_id}/edit", response_class=HTMLResponse)
@handle_api_exceptions("admin_edit_form", ERROR_MESSAGES["general"])
async def admin_edit_form(video_id: str, video_store: VideoStore = Depends(get_video_store)):
    video = await video_store.get_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail=ERROR_MESSAGES["not_found"])
    return HTMLResponse(render_edit_page(video))


@router.post("/videos/{video_id}/edit")
@handle_api_exceptions("admin_update_video", ERROR_MESSAGES["general"])
async def admin_update_video(
    video_id: str,
    request: Request,
    video_store: VideoStore = Depends(get_video_store),
):
    """
    Update a video's description and redirect back to the list.

    Only the description changes. Submitting the same value twice leaves
    the row as after the first submission.
    """
    form = await request.form()
    description = form.get("description")
    if description is None or not isinstance(description, str):
        raise HTTPException(status_code=400, detail="Description is required")

    updated = await video_store.update_description(video_id, description)
    if not updated:
        raise HTTPException(status_code=404, detail=ERROR_MESSAGES["not_found"])

    logger.info(f"Video {video_id} description updated by {_admin_user(request)}")
    log_audit(
        AuditAction.VIDEO_UPDATE,
        client_ip=get_real_ip(request),
        user=_admin_user(request),
        resource_id=video_id,
        details={"description": description},
        request_id=get_request_id(request),
    )
    return RedirectResponse("/admin/videos", status_code=303)


@router.get("/videos/{video_id}/delete")
@handle_api_exceptions("admin_delete_video", ERROR_MESSAGES["general"])
async def admin_delete_video(
    video_id: str,
    request: Request,
    video_store: VideoStore = Depends(get_video_store),
    object_store: ObjectStore = Depends(get_object_store),
):
    """
    Delete a video row and then its stored object.

    The two deletes are not transactional. If the object delete fails the
    row is already gone; the dangling key is logged and the request fails.
    """
    filename = await video_store.delete_video(video_id)
    if filename is None:
        raise HTTPException(status_code=404, detail=ERROR_MESSAGES["not_found"])

    try:
        await object_store.delete(filename)
    except ObjectStoreError as e:
        logger.error(f"Video {video_id} row deleted but object {filename} could not be removed: {e}")
        log_audit(
            AuditAction.VIDEO_DELETE,
            client_ip=get_real_ip(request),
            user=_admin_user(request),
            resource_id=video_id,
            resource_name=filename,
            success=False,
            error=str(e),
            request_id=get_request_id(request),
        )
        raise HTTPException(status_code=500, detail=ERROR_MESSAGES["storage"]) from e

    logger.info(f"Video {video_id} ({filename}) deleted by {_admin_user(request)}")
    log_audit(
        AuditAction.VIDEO_DELETE,
        client_ip=get_real_ip(request),
        user=_admin_user(request),
        resource_id=video_id,
        resource_name=filename,
        request_id=get_request_id(request),
    )
    return RedirectResponse("/admin/videos", status_code=302)
