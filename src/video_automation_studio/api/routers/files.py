from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import FileResponse

from ...services import FileManagerError, OutputFileManager
from ...utils.file_utils import content_type_for
from ..deps import get_file_manager

router = APIRouter(prefix="/api", tags=["files"])


@router.get("/download/{filename}")
def download(filename: str, file_manager: OutputFileManager = Depends(get_file_manager)) -> FileResponse:
    try:
        path = file_manager.resolve(filename)
    except FileManagerError:
        raise HTTPException(status_code=400, detail="Invalid filename")
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(
        path,
        media_type=content_type_for(path.name),
        filename=path.name,
    )


@router.get("/files")
def list_files(file_manager: OutputFileManager = Depends(get_file_manager)) -> dict:
    files = file_manager.list_files()
    return {
        "files": files,
        "grouped": file_manager.group_files(files),
        "summary": file_manager.summary(files),
    }


@router.get("/files/summary")
def files_summary(file_manager: OutputFileManager = Depends(get_file_manager)) -> dict:
    return file_manager.summary()


@router.delete("/files/{filename}")
def delete_file(filename: str, file_manager: OutputFileManager = Depends(get_file_manager)) -> dict:
    try:
        deleted = file_manager.delete(filename)
    except FileManagerError:
        raise HTTPException(status_code=400, detail="Invalid filename")
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    return {"success": True, "deleted": deleted}


@router.post("/cleanup")
def cleanup(payload: dict = Body(default={}), file_manager: OutputFileManager = Depends(get_file_manager)) -> dict:
    older_than_hours = payload.get("olderThanHours", file_manager.retention_hours)
    if isinstance(older_than_hours, bool) or not isinstance(older_than_hours, (int, float)):
        raise HTTPException(status_code=400, detail="olderThanHours must be a number")
    try:
        summary = file_manager.cleanup(older_than_hours)
    except FileManagerError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **summary}
