"""Export the whole store as one zip: manifest.json plus files/<lessonId>.<ext>."""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO
from zipfile import ZIP_DEFLATED, ZipFile

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.config import settings
from lessonbook.models import Lesson, Semester, Subject, Year
from lessonbook.schemas.archive import (
    ExportResult,
    LessonRow,
    Manifest,
    SemesterEntry,
    SubjectEntry,
    YearEntry,
)
from lessonbook.services import folder_keys, media

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
FILES_DIR = "files"


def blob_name(lesson_id: int, ext: str) -> str:
    """Archive entry for a leaf image. Keyed by lesson id so names never collide."""
    return f"{FILES_DIR}/{lesson_id}.{ext}"


def lesson_row(lesson: Lesson) -> LessonRow:
    return LessonRow(
        id=lesson.id,
        subject_id=lesson.subject_id,
        name=lesson.name,
        image_path=lesson.image_path,
        is_container=lesson.is_container,
        created_at=lesson.created_at.isoformat() if lesson.created_at else None,
    )


def _add_lesson_file(zf: ZipFile, lesson: Lesson) -> bool:
    if lesson.is_container:
        return False
    path = folder_keys.strip_all_prefixes(lesson.image_path)
    if not folder_keys.is_file_path(path) or not media.exists(path):
        return False
    try:
        data = media.read_bytes(path)
    except OSError as e:
        logger.warning("Skipping unreadable lesson file", extra={"lesson_id": lesson.id, "error": str(e)})
        return False
    if data is None:
        return False
    zf.writestr(blob_name(lesson.id, media.extension_of(path)), data)
    return True


async def export_archive(db: AsyncSession, target: str | Path | BinaryIO) -> ExportResult:
    """Write every year, semester, subject and lesson, plus leaf images, into ``target``."""
    stats = ExportResult()
    years_out: list[YearEntry] = []

    with ZipFile(target, "w", ZIP_DEFLATED) as zf:
        years = (await db.execute(select(Year).order_by(Year.id))).scalars().all()
        for year in years:
            year_entry = YearEntry(id=year.id, name=year.name, semesters=[])
            semesters = (
                await db.execute(select(Semester).where(Semester.year_id == year.id).order_by(Semester.id))
            ).scalars().all()
            for semester in semesters:
                semester_entry = SemesterEntry(id=semester.id, name=semester.name, subjects=[])
                subjects = (
                    await db.execute(
                        select(Subject).where(Subject.semester_id == semester.id).order_by(Subject.id)
                    )
                ).scalars().all()
                for subject in subjects:
                    # root and nested lessons at any depth
                    lessons = (
                        await db.execute(
                            select(Lesson).where(Lesson.subject_id == subject.id).order_by(Lesson.id)
                        )
                    ).scalars().all()
                    for lesson in lessons:
                        if _add_lesson_file(zf, lesson):
                            stats.files += 1
                    semester_entry.subjects.append(
                        SubjectEntry(
                            id=subject.id,
                            name=subject.name,
                            lessons=[lesson_row(lesson).model_dump() for lesson in lessons],
                        )
                    )
                    stats.subjects += 1
                    stats.lessons += len(lessons)
                year_entry.semesters.append(semester_entry)
                stats.semesters += 1
            years_out.append(year_entry)
            stats.years += 1

        manifest = Manifest(exported_at=datetime.now(timezone.utc), years=years_out)
        zf.writestr(MANIFEST_NAME, manifest.model_dump_json(by_alias=True, indent=2))

    logger.info("Archive exported", extra=stats.model_dump())
    return stats


async def export_to_file(db: AsyncSession, directory: str | Path | None = None) -> tuple[Path, ExportResult]:
    """Export into ``directory`` as lessonbook-export-<timestamp>.zip.

    The archive is written to a temporary file and renamed when complete.
    """
    dest_dir = Path(directory or settings.export_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    final = dest_dir / f"lessonbook-export-{stamp}.zip"
    tmp = final.with_suffix(".zip.tmp")
    try:
        stats = await export_archive(db, tmp)
        os.replace(tmp, final)
    finally:
        if tmp.exists():
            tmp.unlink()
    return final, stats
