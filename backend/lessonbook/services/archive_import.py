"""Merge an exported archive into the store.

Years, semesters and subjects are matched by name in their scope and reused.
Lessons are always inserted fresh, so every ``FC:<id>:`` parent reference
has to be rewritten from source ids to destination ids:

1. ``assign_identities`` inserts rows (containers without a key, leaves with
   their new file path) and returns the source -> destination id map.
2. ``plan_key_rewrites`` computes the new ``image_path`` values. Pure.
3. ``apply_key_rewrites`` writes them.

A parent id missing from the map is kept as is; the row imports as an orphan.
"""

import logging
from pathlib import Path
from typing import BinaryIO
from zipfile import BadZipFile, ZipFile

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.models import Lesson, Semester, Subject, Year
from lessonbook.schemas.archive import ImportResult, LessonRow, Manifest
from lessonbook.services import folder_keys, media
from lessonbook.services.archive_export import MANIFEST_NAME, blob_name
from lessonbook.services.errors import ArchiveError, StoreError

logger = logging.getLogger(__name__)


def open_archive(source: str | Path | BinaryIO) -> ZipFile:
    try:
        return ZipFile(source)
    except (BadZipFile, OSError) as e:
        raise ArchiveError("Archive is not a readable zip file") from e


def read_manifest(zf: ZipFile) -> Manifest:
    try:
        raw = zf.read(MANIFEST_NAME)
    except KeyError as e:
        raise ArchiveError(f"Archive has no {MANIFEST_NAME}") from e
    except (BadZipFile, OSError) as e:
        raise ArchiveError(f"Cannot read {MANIFEST_NAME}") from e
    try:
        return Manifest.model_validate_json(raw)
    except ValidationError as e:
        raise ArchiveError(f"Invalid {MANIFEST_NAME}") from e


def is_root_container(lesson: LessonRow) -> bool:
    return lesson.is_container and folder_keys.is_root(lesson.image_path)


def insertion_order(lessons: list[LessonRow]) -> list[LessonRow]:
    """Root containers first; everything else keeps its relative order."""
    return sorted(lessons, key=lambda lesson: 0 if is_root_container(lesson) else 1)


def validate_lessons(entries: list, result: ImportResult) -> list[LessonRow]:
    """Parse raw manifest lesson entries; malformed ones are counted as skipped."""
    rows: list[LessonRow] = []
    for raw in entries:
        try:
            rows.append(LessonRow.model_validate(raw))
        except ValidationError as e:
            source_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(
                "Skipping malformed lesson entry",
                extra={"source_id": source_id, "error": str(e)},
            )
            result.skipped += 1
    return rows


def plan_key_rewrites(
    lessons: list[LessonRow],
    id_map: dict[int, int],
    fresh_paths: dict[int, str],
) -> dict[int, str | None]:
    """Return destination lesson id -> new ``image_path`` for rows that need one."""
    updates: dict[int, str | None] = {}
    for lesson in lessons:
        new_id = id_map.get(lesson.id)
        if new_id is None or lesson.image_path is None:
            continue
        if lesson.is_container:
            updates[new_id] = folder_keys.remap_key(lesson.image_path, id_map)
            continue
        chain = folder_keys.prefix_chain(lesson.image_path)
        if chain and lesson.id in fresh_paths:
            updates[new_id] = folder_keys.remap_key(chain, id_map) + fresh_paths[lesson.id]
    return updates


async def _find_or_create_year(db: AsyncSession, name: str) -> tuple[Year, bool]:
    result = await db.execute(select(Year).where(Year.name == name).limit(1))
    year = result.scalar_one_or_none()
    if year is not None:
        return year, False
    year = Year(name=name)
    db.add(year)
    await db.flush()
    return year, True


async def _find_or_create_semester(db: AsyncSession, year_id: int, name: str) -> tuple[Semester, bool]:
    result = await db.execute(
        select(Semester)
        .where(Semester.year_id == year_id, Semester.name == name)
        .order_by(Semester.id)
        .limit(1)
    )
    semester = result.scalar_one_or_none()
    if semester is not None:
        return semester, False
    semester = Semester(year_id=year_id, name=name)
    db.add(semester)
    await db.flush()
    return semester, True


async def _find_or_create_subject(db: AsyncSession, semester_id: int, name: str) -> tuple[Subject, bool]:
    result = await db.execute(
        select(Subject)
        .where(Subject.semester_id == semester_id, Subject.name == name)
        .order_by(Subject.id)
        .limit(1)
    )
    subject = result.scalar_one_or_none()
    if subject is not None:
        return subject, False
    subject = Subject(semester_id=semester_id, name=name)
    db.add(subject)
    await db.flush()
    return subject, True


async def assign_identities(
    db: AsyncSession,
    zf: ZipFile,
    subject: Subject,
    lessons: list[LessonRow],
    namespace: tuple[str, ...],
    result: ImportResult,
) -> tuple[dict[int, int], dict[int, str]]:
    """Insert every importable lesson. Returns (id_map, fresh file path by source id)."""
    id_map: dict[int, int] = {}
    fresh_paths: dict[int, str] = {}
    entries = set(zf.namelist())

    for lesson in insertion_order(lessons):
        image_path: str | None = None
        saved: Path | None = None
        try:
            if not lesson.is_container:
                real = folder_keys.strip_all_prefixes(lesson.image_path)
                if not folder_keys.is_file_path(real):
                    result.skipped += 1
                    continue
                ext = media.extension_of(real)
                entry = blob_name(lesson.id, ext)
                if entry not in entries:
                    logger.warning("Archive entry missing", extra={"entry": entry})
                    result.skipped += 1
                    continue
                saved = media.save_bytes(
                    zf.read(entry),
                    media.fresh_filename(*namespace, lesson.name, ext=ext, tag=lesson.id),
                )
                image_path = str(saved)

            async with db.begin_nested():
                row = Lesson(
                    subject_id=subject.id,
                    name=lesson.name,
                    is_container=lesson.is_container,
                    image_path=image_path,
                )
                db.add(row)
                await db.flush()
        except Exception as e:
            logger.warning(
                "Skipping lesson during import",
                extra={"source_id": lesson.id, "error": str(e)},
            )
            if saved is not None:
                media.delete_file(str(saved))
            result.skipped += 1
            continue

        id_map[lesson.id] = row.id
        if image_path is not None:
            fresh_paths[lesson.id] = image_path
        result.imported += 1

    return id_map, fresh_paths


async def apply_key_rewrites(db: AsyncSession, updates: dict[int, str | None]) -> None:
    for lesson_id, image_path in updates.items():
        try:
            async with db.begin_nested():
                await db.execute(
                    update(Lesson).where(Lesson.id == lesson_id).values(image_path=image_path)
                )
        except Exception as e:
            logger.warning("Failed to rewrite lesson key", extra={"lesson_id": lesson_id, "error": str(e)})


async def _commit_subject(db: AsyncSession, subject: Subject | None, fresh_paths: dict[int, str]) -> None:
    """Commit one subject's lessons; on failure remove the files saved for them."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        for path in fresh_paths.values():
            media.delete_file(path)
        logger.error(
            "Import commit failed",
            extra={"subject_id": subject.id if subject else None, "files_removed": len(fresh_paths)},
        )
        raise StoreError(f"Import could not be saved: {e}") from e


async def import_archive(db: AsyncSession, source: str | Path | BinaryIO) -> ImportResult:
    """Merge the archive at ``source`` into the store.

    Raises ``ArchiveError`` if the archive or its manifest cannot be read;
    anything wrong with a single lesson is logged and skipped. Raises
    ``StoreError`` if a commit fails; files saved for that subject are removed.
    """
    result = ImportResult()
    with open_archive(source) as zf:
        manifest = read_manifest(zf)
        for year_entry in manifest.years:
            year, created = await _find_or_create_year(db, year_entry.name)
            result.years_created += int(created)
            for semester_entry in year_entry.semesters:
                semester, created = await _find_or_create_semester(db, year.id, semester_entry.name)
                result.semesters_created += int(created)
                for subject_entry in semester_entry.subjects:
                    subject, created = await _find_or_create_subject(db, semester.id, subject_entry.name)
                    result.subjects_created += int(created)

                    lessons = validate_lessons(subject_entry.lessons, result)
                    id_map, fresh_paths = await assign_identities(
                        db,
                        zf,
                        subject,
                        lessons,
                        (year.name, semester.name, subject.name),
                        result,
                    )
                    updates = plan_key_rewrites(lessons, id_map, fresh_paths)
                    await apply_key_rewrites(db, updates)
                    await _commit_subject(db, subject, fresh_paths)
        await _commit_subject(db, None, {})

    logger.info("Archive imported", extra=result.model_dump())
    return result
