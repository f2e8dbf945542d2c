from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...config import Settings
from ...logging_config import get_logger
from ...services import CombineRequest, JobOrchestrator, JobOrchestratorError, OutputFileManager
from ...utils.time_utils import new_job_id
from ..deps import get_app_settings, get_file_manager, get_orchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["videos"])


def _parse_request(payload: dict, settings: Settings) -> CombineRequest:
    try:
        return CombineRequest.from_payload(payload, default_subtitle_mode=settings.subtitle_mode)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/combine-videos")
def combine_videos(
    background_tasks: BackgroundTasks,
    payload: dict = Body(...),
    settings: Settings = Depends(get_app_settings),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    file_manager: OutputFileManager = Depends(get_file_manager),
):
    request = _parse_request(payload, settings)
    job_id = new_job_id()

    try:
        result = orchestrator.run_combine_job(request, job_id=job_id)
    except JobOrchestratorError as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Video combination failed", "message": str(e), "jobId": e.job_id or job_id},
        )

    if orchestrator.should_publish(result, request.youtube_credentials):
        background_tasks.add_task(
            orchestrator.publish_result,
            result,
            request.youtube_credentials,
            request.openai_api_key,
            request.privacy_status,
        )
        logger.info("Publishing scheduled", job_id=job_id)

    return result.to_response(file_manager.download_url(result.output.filename))


@router.post("/prepare-videos")
def prepare_videos(
    payload: dict = Body(...),
    settings: Settings = Depends(get_app_settings),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    file_manager: OutputFileManager = Depends(get_file_manager),
):
    request = _parse_request(payload, settings)
    job_id = new_job_id()

    try:
        result = orchestrator.prepare_videos(request, job_id=job_id)
    except JobOrchestratorError as e:
        return JSONResponse(
            status_code=500,
            content={"error": "Video preparation failed", "message": str(e), "jobId": e.job_id or job_id},
        )
    return result.to_response(file_manager.download_url(result.output.filename))
