"""
HTTP API for the video automation studio.
"""

from .app import create_app

__all__ = ["create_app"]
