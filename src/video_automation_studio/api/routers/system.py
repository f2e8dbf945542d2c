from __future__ import annotations

from fastapi import APIRouter, Depends

from ...services import FFmpegRunner
from ...utils.time_utils import get_timestamp
from ..deps import get_ffmpeg

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
def health(ffmpeg: FFmpegRunner = Depends(get_ffmpeg)) -> dict:
    return {
        "status": "OK",
        "timestamp": get_timestamp(),
        "ffmpegAvailable": ffmpeg.is_available(),
    }
