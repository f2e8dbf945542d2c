from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...config import Settings
from ...logging_config import get_logger
from ...models import VideoMetadata
from ...services import FileManagerError, OutputFileManager, PublishError, YouTubePublisher
from ...utils.time_utils import new_job_id
from ..deps import get_app_settings, get_file_manager, get_publisher

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["youtube"])


@router.post("/upload-to-youtube")
def upload_to_youtube(
    payload: dict = Body(...),
    settings: Settings = Depends(get_app_settings),
    publisher: YouTubePublisher = Depends(get_publisher),
    file_manager: OutputFileManager = Depends(get_file_manager),
):
    upload_id = new_job_id()
    filename = payload.get("filename")
    title = payload.get("title")
    credentials = payload.get("youtubeCredentials") or {}

    if not filename:
        raise HTTPException(status_code=400, detail="Filename is required")
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    if not isinstance(credentials, dict) or not credentials.get("accessToken"):
        raise HTTPException(status_code=400, detail="YouTube credentials are required")

    try:
        video_path = file_manager.resolve(filename)
    except FileManagerError:
        raise HTTPException(status_code=400, detail="Invalid filename")
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Video file not found")

    try:
        metadata = VideoMetadata(
            title=title,
            description=payload.get("description") or "",
            tags=payload.get("tags") or [],
            privacy_status=payload.get("privacyStatus") or settings.youtube_default_privacy,
            category_id=str(payload.get("categoryId") or settings.youtube_category_id),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("YouTube upload requested", upload_id=upload_id, file=filename, privacy=metadata.privacy_status)
    try:
        upload = publisher.upload(video_path, metadata, credentials)
    except PublishError as e:
        logger.error("YouTube upload failed", upload_id=upload_id, error=str(e))
        return JSONResponse(
            status_code=500,
            content={"error": "YouTube upload failed", "message": str(e), "uploadId": upload_id},
        )

    return {
        "success": True,
        "uploadId": upload_id,
        "youtube": upload.to_dict(),
        "metadata": {
            "filename": filename,
            **metadata.to_dict(),
            "uploadedAt": upload.uploaded_at.isoformat(),
        },
    }
