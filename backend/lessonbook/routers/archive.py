"""Export endpoints: whole store as a zip archive, and import of such archives."""

import io
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.database import get_db
from lessonbook.dependencies import archive_busy_gate, http_error
from lessonbook.middleware.rate_limit import archive_limiter
from lessonbook.schemas.archive import ImportResult, SavedExport
from lessonbook.services.archive_export import export_archive, export_to_file
from lessonbook.services.archive_import import import_archive
from lessonbook.services.errors import ArchiveError, LessonbookError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/archive", tags=["archive"])


@router.get("/export", dependencies=[Depends(archive_busy_gate)])
@archive_limiter
async def export_zip(request: Request, db: AsyncSession = Depends(get_db)):
    """Download every year, semester, subject and lesson with their images."""
    buf = io.BytesIO()
    await export_archive(db, buf)
    buf.seek(0)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return StreamingResponse(
        buf,
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename=lessonbook-export-{stamp}.zip"},
    )


@router.post("/export/save", response_model=SavedExport, status_code=201, dependencies=[Depends(archive_busy_gate)])
@archive_limiter
async def save_export(request: Request, db: AsyncSession = Depends(get_db)) -> SavedExport:
    """Write the archive into the server's export directory instead of downloading it."""
    path, stats = await export_to_file(db)
    return SavedExport(path=str(path), stats=stats)


@router.post("/import", response_model=ImportResult, dependencies=[Depends(archive_busy_gate)])
@archive_limiter
async def import_zip(
    request: Request,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
) -> ImportResult:
    data = await file.read()
    try:
        return await import_archive(db, io.BytesIO(data))
    except ArchiveError as e:
        logger.warning("Import rejected", extra={"upload": file.filename, "error": str(e)})
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LessonbookError as e:
        raise http_error(e) from e
