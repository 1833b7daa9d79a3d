"""Lesson image files stored under settings.media_dir."""

import logging
import re
import time
from pathlib import Path

from lessonbook.config import settings

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"


def _ensure_media_dir() -> Path:
    root = Path(settings.media_dir).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def sanitize_name(name: str) -> str:
    s = re.sub(r'[<>:"/\\|?*\s]+', "_", name.strip())
    return s[:60] or "untitled"


def extension_of(path: str | None) -> str:
    """Last dot-segment of the file name as written; ``jpg`` when there is none."""
    if not path:
        return DEFAULT_EXTENSION
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_EXTENSION
    ext = name.rsplit(".", 1)[-1]
    return ext or DEFAULT_EXTENSION


def fresh_filename(*parts: str, ext: str, tag: str | int | None = None) -> str:
    stem = "_".join(sanitize_name(p) for p in parts)
    name = f"{stem}_{time.time_ns()}"
    if tag is not None:
        name = f"{name}_{tag}"
    return f"{name}.{ext}"


def save_bytes(data: bytes, filename: str) -> Path:
    path = _ensure_media_dir() / filename
    path.write_bytes(data)
    return path


def read_bytes(path: str) -> bytes | None:
    p = Path(path)
    if not p.is_file():
        return None
    return p.read_bytes()


def exists(path: str) -> bool:
    return Path(path).is_file()


def delete_file(path: str) -> bool:
    """Remove a file. Missing files and OS errors are logged, never raised."""
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to delete media file", extra={"path": path, "error": str(e)})
        return False
