"""
Command-line entry point: runs the API server with uvicorn.
"""

import argparse

import uvicorn

from .config import get_settings


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="video-studio", description="Run the video automation studio API")
    parser.add_argument("--host", default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    parser.add_argument("--log-level", default=settings.log_level.lower(), help="uvicorn log level")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    uvicorn.run(
        "video_automation_studio.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
