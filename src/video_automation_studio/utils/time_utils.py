"""
Time and identifier helpers for the video automation studio.
"""

import random
import string
import time
from datetime import datetime

_JOB_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def format_duration(seconds: float) -> str:
    """Render seconds as HH:MM:SS.mmm for logs, e.g. 3725.5 -> '01:02:05.500'."""
    if seconds < 0:
        raise ValueError("Duration cannot be negative")
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours:02d}:{minutes:02d}:{secs:06.3f}"


def get_timestamp() -> str:
    """Current local time as an ISO 8601 string, as the API reports it."""
    return datetime.now().isoformat()


def new_job_id() -> str:
    """
    Build a job identifier: epoch milliseconds plus a short random suffix.

    Used in output filenames, so it only contains [0-9a-z_].
    """
    suffix = "".join(random.choices(_JOB_SUFFIX_ALPHABET, k=6))
    return f"{int(time.time() * 1000)}_{suffix}"
