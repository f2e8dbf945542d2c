"""
Utility modules for the video automation studio.
"""

from .file_utils import (
    ensure_directory,
    format_size_mb,
    remove_file,
    remove_directory,
    content_type_for,
)

from .time_utils import (
    format_duration,
    get_timestamp,
    new_job_id,
)

from .retry import (
    RetryPolicy,
    exponential_backoff,
    constant_delay,
)

__all__ = [
    "ensure_directory",
    "format_size_mb",
    "remove_file",
    "remove_directory",
    "content_type_for",
    "format_duration",
    "get_timestamp",
    "new_job_id",
    "RetryPolicy",
    "exponential_backoff",
    "constant_delay",
]
