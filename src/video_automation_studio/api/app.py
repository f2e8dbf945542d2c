from __future__ import annotations

import threading
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import get_settings
from ..logging_config import get_logger
from .deps import get_file_manager
from .routers import files as files_router
from .routers import scripts as scripts_router
from .routers import system as system_router
from .routers import videos as videos_router
from .routers import youtube as youtube_router

logger = get_logger(__name__)


def _cleanup_loop(interval_seconds: int) -> None:
    while True:
        time.sleep(interval_seconds)
        try:
            get_file_manager().cleanup_expired()
        except OSError as e:
            logger.error("Retention cleanup failed", error=str(e))


def create_app(start_cleanup: bool = True) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Video Automation Studio", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router.router)
    app.include_router(scripts_router.router)
    app.include_router(videos_router.router)
    app.include_router(files_router.router)
    app.include_router(youtube_router.router)

    if start_cleanup:
        threading.Thread(
            target=_cleanup_loop,
            args=(settings.cleanup_interval_seconds,),
            daemon=True,
        ).start()
    logger.info(
        "API created",
        output_dir=str(settings.output_dir),
        temp_dir=str(settings.temp_dir),
        retention_hours=settings.output_retention_hours,
    )
    return app

