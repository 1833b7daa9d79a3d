import asyncio
import logging
from collections.abc import AsyncGenerator

from fastapi import HTTPException, status

from lessonbook.services.errors import (
    InvalidParentError,
    InvalidPathError,
    LessonbookError,
    NameTakenError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

# One export or import at a time: both walk the whole store.
_archive_lock = asyncio.Lock()


async def archive_busy_gate() -> AsyncGenerator[None, None]:
    if _archive_lock.locked():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another export or import is in progress",
        )
    async with _archive_lock:
        yield


def http_error(exc: LessonbookError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, NameTakenError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (InvalidParentError, InvalidPathError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.warning("Store error", extra={"error": str(exc)})
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
