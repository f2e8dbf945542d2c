"""
YouTube publishing through the YouTube Data API v3.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from ..config import get_settings
from ..logging_config import LoggerMixin
from ..models import UploadResult, VideoMetadata
from ..utils.retry import RetryPolicy, exponential_backoff

TOKEN_URI = "https://oauth2.googleapis.com/token"
UPLOAD_SCOPES = ["https://www.googleapis.com/auth/youtube.upload"]
RETRIABLE_STATUS_CODES = (500, 502, 503, 504)
VIDEO_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
}


class PublishError(Exception):
    """Raised when a video cannot be published."""
    pass


def _is_retriable(exc: BaseException) -> bool:
    if isinstance(exc, HttpError):
        return getattr(exc.resp, "status", None) in RETRIABLE_STATUS_CODES
    return isinstance(exc, (ConnectionError, TimeoutError))


def build_credentials(youtube_credentials: Dict[str, Any]) -> Credentials:
    """
    Build OAuth2 credentials from the dashboard's credential payload.

    Expected keys: accessToken (required), refreshToken, clientId,
    clientSecret. redirectUri is accepted but not needed for uploads.

    Raises:
        PublishError: If the access token is missing or a refresh fails
    """
    access_token = (youtube_credentials or {}).get("accessToken")
    if not access_token:
        raise PublishError("YouTube access token is required")

    credentials = Credentials(
        token=access_token,
        refresh_token=youtube_credentials.get("refreshToken"),
        token_uri=TOKEN_URI,
        client_id=youtube_credentials.get("clientId"),
        client_secret=youtube_credentials.get("clientSecret"),
        scopes=UPLOAD_SCOPES,
    )

    if credentials.expired and credentials.refresh_token:
        try:
            credentials.refresh(Request())
        except (RefreshError, TransportError) as e:
            raise PublishError(f"Failed to refresh YouTube credentials: {e}") from e
    return credentials


def get_mime_type(file_path: Path) -> str:
    return MIME_TYPES.get(Path(file_path).suffix.lower(), "video/mp4")


class YouTubePublisher(LoggerMixin):
    """Uploads finished videos to YouTube with resumable uploads."""

    def __init__(self, settings=None, service_factory: Optional[Callable[..., Any]] = None, sleep=None):
        self.settings = settings or get_settings()
        self.service_factory = service_factory or self._default_service
        self.default_language = self.settings.youtube_default_language
        self.chunk_policy = RetryPolicy(
            max_attempts=int(self.settings.youtube_upload_max_attempts),
            delay_fn=exponential_backoff(2.0, 30.0),
            retry_on=_is_retriable,
            sleep=sleep or time.sleep,
        )

    @staticmethod
    def _default_service(credentials: Credentials) -> Any:
        return build("youtube", "v3", credentials=credentials, cache_discovery=False)

    def build_request_body(self, metadata: VideoMetadata) -> Dict[str, Any]:
        """Build the `videos.insert` request body."""
        return {
            "snippet": {
                "title": metadata.title,
                "description": metadata.description or "",
                "tags": list(metadata.tags),
                "categoryId": metadata.category_id,
                "defaultLanguage": self.default_language,
                "defaultAudioLanguage": self.default_language,
            },
            "status": {
                "privacyStatus": metadata.privacy_status,
                "selfDeclaredMadeForKids": False,
            },
        }

    def upload(self, video_path: Path, metadata: VideoMetadata, youtube_credentials: Dict[str, Any]) -> UploadResult:
        """
        Upload a video file to YouTube.

        Args:
            video_path: File to upload
            metadata: Title, description, tags, privacy and category
            youtube_credentials: Dashboard credential payload

        Returns:
            UploadResult with the remote id and URL

        Raises:
            PublishError: On missing input, API errors or an empty response
        """
        video_path = Path(video_path)
        if not video_path.exists():
            raise PublishError(f"Video file not found: {video_path.name}")

        credentials = build_credentials(youtube_credentials)
        body = self.build_request_body(metadata)

        self.logger.info(
            "Starting YouTube upload",
            file=video_path.name,
            size_mb=round(video_path.stat().st_size / (1024 * 1024)),
            title=metadata.title,
            privacy=metadata.privacy_status,
        )

        try:
            service = self.service_factory(credentials)
            media = MediaFileUpload(
                str(video_path),
                chunksize=-1,
                resumable=True,
                mimetype=get_mime_type(video_path),
            )
            request = service.videos().insert(
                part=",".join(body.keys()),
                body=body,
                media_body=media,
            )

            response = None
            while response is None:
                status, response = self.chunk_policy.call(request.next_chunk, description="youtube upload chunk")
                if status:
                    self.logger.info("Upload progress", percent=int(status.progress() * 100))
        except HttpError as e:
            self.logger.error("YouTube API error", status=getattr(e.resp, "status", None), error=str(e))
            raise PublishError(f"YouTube upload failed: {e}") from e
        except (OSError, RefreshError, TransportError) as e:
            raise PublishError(f"YouTube upload failed: {e}") from e

        video_id = (response or {}).get("id")
        if not video_id:
            raise PublishError("YouTube did not return a video id")

        returned_status = (response.get("status") or {}).get("privacyStatus", metadata.privacy_status)
        returned_title = (response.get("snippet") or {}).get("title", metadata.title)
        result = UploadResult(
            video_id=video_id,
            video_url=VIDEO_URL_TEMPLATE.format(video_id=video_id),
            title=returned_title,
            privacy_status=returned_status,
        )
        self.logger.info("YouTube upload completed", video_id=video_id, url=result.video_url)
        return result
