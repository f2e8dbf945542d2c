"""ASGI entry point: `uvicorn video_automation_studio.api.main:app`."""

from __future__ import annotations

from .app import create_app

app = create_app()
