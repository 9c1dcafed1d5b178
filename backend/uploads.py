"""
Local PDF upload sink.

Files are written under UPLOAD_DIR as ``<ms-timestamp>-<sanitized-name>`` and
served back from UPLOAD_URL_PREFIX. The sink is local and non-durable; it
stands in for an object store.
"""

import logging
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from starlette.concurrency import run_in_threadpool

from errors import EduHubError, UnsupportedType
from settings import UPLOAD_DIR

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.-]")

_last_timestamp = 0
_timestamp_lock = threading.Lock()


@dataclass
class StoredUpload:
    url: str
    filename: str
    stored_name: str
    size: int


def get_upload_dir() -> Path:
    return UPLOAD_DIR


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def _next_timestamp() -> int:
    # strictly increasing per process, so equal names never collide
    global _last_timestamp
    with _timestamp_lock:
        now = int(time.time() * 1000)
        if now <= _last_timestamp:
            now = _last_timestamp + 1
        _last_timestamp = now
        return now


def generate_filename(original_name: str) -> str:
    return f"{_next_timestamp()}-{sanitize_filename(original_name)}"


def store_upload(
    data: bytes,
    original_name: str,
    upload_dir: Union[str, Path],
    url_prefix: str = "/uploads",
) -> StoredUpload:
    if not original_name or not original_name.endswith(".pdf"):
        logger.warning("Rejected upload %r: not a PDF", original_name)
        raise UnsupportedType("Only PDF files are allowed")

    upload_dir = Path(upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    stored_name = generate_filename(original_name)
    (upload_dir / stored_name).write_bytes(data)
    logger.info("Stored upload %s (%d bytes)", stored_name, len(data))

    return StoredUpload(
        url=f"{url_prefix.rstrip('/')}/{stored_name}",
        filename=original_name,
        stored_name=stored_name,
        size=len(data),
    )


async def save_upload(
    data: bytes,
    original_name: str,
    upload_dir: Union[str, Path],
    url_prefix: str = "/uploads",
) -> StoredUpload:
    """Store an upload off the event loop; filesystem failures become EduHubError."""
    try:
        return await run_in_threadpool(store_upload, data, original_name, upload_dir, url_prefix)
    except OSError as e:
        logger.error("Error uploading file %s: %s", original_name, e)
        raise EduHubError("Failed to upload file") from e
