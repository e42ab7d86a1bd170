#!/usr/bin/env python3
"""
Content fingerprinting, size gating and path helpers
"""
import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

# Default max item size in megabytes
DEFAULT_MAX_ITEM_SIZE_MB = 10

# File extensions that get a deferred thumbnail when copied as a file
IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "ico"}


def compute_hash(data: Union[bytes, str]) -> str:
    """
    Calculate SHA256 hash of content bytes

    Strings are hashed as their UTF-8 encoding.
    Returns hex digest (64 characters)
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def exceeds_size_limit(size: int, limit_mb: int) -> bool:
    """True if size is strictly larger than limit_mb megabytes"""
    return size > limit_mb * 1024 * 1024


def parse_size_limit(value) -> int:
    """Parse the max_item_size_mb setting, falling back to the default"""
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return DEFAULT_MAX_ITEM_SIZE_MB
    return limit if limit > 0 else DEFAULT_MAX_ITEM_SIZE_MB


def is_image_file(path: str) -> bool:
    """Check the file extension against the known image types"""
    ext = os.path.splitext(path)[1].lstrip(".").lower()
    return ext in IMAGE_EXTENSIONS


def timestamp_now() -> str:
    """Current UTC time as a sortable ISO 8601 string"""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "clipstash"
