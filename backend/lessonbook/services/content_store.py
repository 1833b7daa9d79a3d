"""CRUD for years, semesters, subjects and lessons.

Every write names its owning parent. Hierarchy-aware lesson queries use the
predicates from ``folder_keys``; file cleanup on delete goes through
``deletion`` because the database cascade does not know about image files.
"""

import logging
from pathlib import Path
from typing import Literal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.config import settings
from lessonbook.models import Lesson, Semester, Subject, Year
from lessonbook.services import folder_keys, media
from lessonbook.services.deletion import DeleteResult, delete_lessons_in_subjects
from lessonbook.services.errors import (
    InvalidParentError,
    InvalidPathError,
    NameTakenError,
    NotFoundError,
    StoreError,
)

logger = logging.getLogger(__name__)

SubjectScope = Literal["single", "year", "everywhere"]


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError(str(e)) from e


# === Years ===

async def list_years(db: AsyncSession) -> list[Year]:
    result = await db.execute(select(Year).order_by(Year.created_at.desc(), Year.id.desc()))
    return list(result.scalars().all())


async def get_year(db: AsyncSession, year_id: int) -> Year:
    year = await db.get(Year, year_id)
    if year is None:
        raise NotFoundError("Year not found")
    return year


async def _year_name_taken(db: AsyncSession, name: str, exclude_id: int | None = None) -> bool:
    q = select(Year.id).where(Year.name == name)
    if exclude_id is not None:
        q = q.where(Year.id != exclude_id)
    result = await db.execute(q)
    return result.first() is not None


async def create_year(db: AsyncSession, name: str, seed_semesters: bool = True) -> Year:
    if await _year_name_taken(db, name):
        raise NameTakenError(f"Year '{name}' already exists")
    year = Year(name=name)
    db.add(year)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise NameTakenError(f"Year '{name}' already exists") from e
    if seed_semesters:
        for semester_name in settings.default_semesters:
            db.add(Semester(year_id=year.id, name=semester_name))
    await _commit(db)
    return year


async def rename_year(db: AsyncSession, year_id: int, name: str) -> Year:
    year = await get_year(db, year_id)
    if await _year_name_taken(db, name, exclude_id=year_id):
        raise NameTakenError(f"Year '{name}' already exists")
    year.name = name
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise NameTakenError(f"Year '{name}' already exists") from e
    return year


async def _subject_ids_for_year(db: AsyncSession, year_id: int) -> list[int]:
    result = await db.execute(
        select(Subject.id)
        .join(Semester, Semester.id == Subject.semester_id)
        .where(Semester.year_id == year_id)
    )
    return list(result.scalars().all())


async def _subject_ids_for_semester(db: AsyncSession, semester_id: int) -> list[int]:
    result = await db.execute(select(Subject.id).where(Subject.semester_id == semester_id))
    return list(result.scalars().all())


async def delete_year(db: AsyncSession, year_id: int) -> DeleteResult:
    await get_year(db, year_id)
    res = await delete_lessons_in_subjects(db, await _subject_ids_for_year(db, year_id))
    await db.execute(delete(Year).where(Year.id == year_id))
    await _commit(db)
    return res


async def clear_year(db: AsyncSession, year_id: int) -> DeleteResult:
    await get_year(db, year_id)
    res = await delete_lessons_in_subjects(db, await _subject_ids_for_year(db, year_id))
    await db.execute(delete(Semester).where(Semester.year_id == year_id))
    await _commit(db)
    return res


async def seed_years(db: AsyncSession, names: list[str] | None = None) -> list[Year]:
    """Create the configured years once, when the store has none."""
    names = settings.seed_years if names is None else names
    existing = await db.execute(select(Year.id).limit(1))
    if existing.first() is not None:
        return []
    created = [await create_year(db, name) for name in names]
    if created:
        logger.info("Seeded years", extra={"count": len(created)})
    return created


# === Semesters ===

async def list_semesters(db: AsyncSession, year_id: int) -> list[Semester]:
    result = await db.execute(
        select(Semester)
        .where(Semester.year_id == year_id)
        .order_by(Semester.created_at, Semester.id)
    )
    return list(result.scalars().all())


async def get_semester(db: AsyncSession, semester_id: int) -> Semester:
    semester = await db.get(Semester, semester_id)
    if semester is None:
        raise NotFoundError("Semester not found")
    return semester


async def create_semester(db: AsyncSession, year_id: int, name: str) -> Semester:
    await get_year(db, year_id)
    semester = Semester(year_id=year_id, name=name)
    db.add(semester)
    await _commit(db)
    return semester


async def rename_semester(db: AsyncSession, semester_id: int, name: str) -> Semester:
    semester = await get_semester(db, semester_id)
    semester.name = name
    await _commit(db)
    return semester


async def delete_semester(db: AsyncSession, semester_id: int) -> DeleteResult:
    await get_semester(db, semester_id)
    res = await delete_lessons_in_subjects(db, await _subject_ids_for_semester(db, semester_id))
    await db.execute(delete(Semester).where(Semester.id == semester_id))
    await _commit(db)
    return res


async def clear_semester(db: AsyncSession, semester_id: int) -> DeleteResult:
    await get_semester(db, semester_id)
    res = await delete_lessons_in_subjects(db, await _subject_ids_for_semester(db, semester_id))
    await db.execute(delete(Subject).where(Subject.semester_id == semester_id))
    await _commit(db)
    return res


# === Subjects ===

async def list_subjects(db: AsyncSession, semester_id: int) -> list[Subject]:
    result = await db.execute(
        select(Subject)
        .where(Subject.semester_id == semester_id)
        .order_by(Subject.name, Subject.id)
    )
    return list(result.scalars().all())


async def get_subject(db: AsyncSession, subject_id: int) -> Subject:
    subject = await db.get(Subject, subject_id)
    if subject is None:
        raise NotFoundError("Subject not found")
    return subject


async def _propagation_targets(
    db: AsyncSession, semester: Semester, scope: SubjectScope
) -> list[int]:
    if scope == "year":
        q = select(Semester.id).where(Semester.year_id == semester.year_id)
    elif scope == "everywhere":
        q = select(Semester.id).where(Semester.name == semester.name)
    else:
        return []
    result = await db.execute(q.where(Semester.id != semester.id).order_by(Semester.id))
    return list(result.scalars().all())


async def create_subject(
    db: AsyncSession, semester_id: int, name: str, scope: SubjectScope = "single"
) -> list[Subject]:
    """Create a subject, optionally copying it to other semesters.

    ``year`` adds it to every semester of the same year, ``everywhere`` to every
    semester with the same name across all years. Semesters that already hold
    a subject with this name are skipped. The subject in ``semester_id`` is
    returned first.
    """
    semester = await get_semester(db, semester_id)
    created = [Subject(semester_id=semester.id, name=name)]
    for target_id in await _propagation_targets(db, semester, scope):
        existing = await db.execute(
            select(Subject.id).where(Subject.semester_id == target_id, Subject.name == name)
        )
        if existing.first() is None:
            created.append(Subject(semester_id=target_id, name=name))
    db.add_all(created)
    await _commit(db)
    return created


async def rename_subject(db: AsyncSession, subject_id: int, name: str) -> Subject:
    subject = await get_subject(db, subject_id)
    subject.name = name
    await _commit(db)
    return subject


async def delete_subject(db: AsyncSession, subject_id: int) -> DeleteResult:
    await get_subject(db, subject_id)
    res = await delete_lessons_in_subjects(db, [subject_id])
    await db.execute(delete(Subject).where(Subject.id == subject_id))
    await _commit(db)
    return res


async def clear_subject(db: AsyncSession, subject_id: int) -> DeleteResult:
    await get_subject(db, subject_id)
    res = await delete_lessons_in_subjects(db, [subject_id])
    await _commit(db)
    return res


# === Lessons ===

async def get_lesson(db: AsyncSession, lesson_id: int) -> Lesson:
    lesson = await db.get(Lesson, lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson not found")
    return lesson


async def list_root_lessons(db: AsyncSession, subject_id: int) -> list[Lesson]:
    result = await db.execute(
        select(Lesson)
        .where(Lesson.subject_id == subject_id, folder_keys.root_filter(Lesson.image_path))
        .order_by(Lesson.created_at.desc(), Lesson.id.desc())
    )
    return list(result.scalars().all())


async def list_children(db: AsyncSession, container_id: int) -> list[Lesson]:
    container = await get_lesson(db, container_id)
    if not container.is_container:
        raise InvalidParentError("Lesson is not a folder")
    result = await db.execute(
        select(Lesson)
        .where(
            Lesson.subject_id == container.subject_id,
            folder_keys.children_filter(Lesson.image_path, container.id),
        )
        .order_by(Lesson.created_at.desc(), Lesson.id.desc())
    )
    return list(result.scalars().all())


async def _check_parent(db: AsyncSession, subject_id: int, parent_id: int | None) -> None:
    if parent_id is None:
        return
    parent = await db.get(Lesson, parent_id)
    if parent is None or not parent.is_container or parent.subject_id != subject_id:
        raise InvalidParentError("Parent must be a folder in the same subject")


async def create_container(
    db: AsyncSession, subject_id: int, name: str, parent_id: int | None = None
) -> Lesson:
    await get_subject(db, subject_id)
    await _check_parent(db, subject_id, parent_id)
    lesson = Lesson(
        subject_id=subject_id,
        name=name,
        is_container=True,
        image_path=folder_keys.encode_container_marker(parent_id) if parent_id is not None else None,
    )
    db.add(lesson)
    await _commit(db)
    return lesson


async def _insert_leaf(
    db: AsyncSession, subject_id: int, name: str, path: str, parent_id: int | None
) -> Lesson:
    if path.startswith(folder_keys.PREFIX):
        raise InvalidPathError(f"File path must not start with '{folder_keys.PREFIX}'")
    lesson = Lesson(
        subject_id=subject_id,
        name=name,
        is_container=False,
        image_path=folder_keys.encode_leaf(parent_id, path) if parent_id is not None else path,
    )
    db.add(lesson)
    try:
        await _commit(db)
    except StoreError:
        media.delete_file(path)
        raise
    return lesson


async def create_leaf(
    db: AsyncSession,
    subject_id: int,
    name: str,
    data: bytes,
    filename: str | None = None,
    parent_id: int | None = None,
) -> Lesson:
    """Store ``data`` in the media directory and add a photo lesson for it."""
    await get_subject(db, subject_id)
    await _check_parent(db, subject_id, parent_id)
    saved = media.save_bytes(data, media.fresh_filename(name, ext=media.extension_of(filename)))
    return await _insert_leaf(db, subject_id, name, str(saved), parent_id)


async def create_leaf_from_file(
    db: AsyncSession,
    subject_id: int,
    name: str,
    source_path: str,
    parent_id: int | None = None,
) -> Lesson:
    """Copy an existing image file into the media directory as a new photo lesson."""
    if source_path.startswith(folder_keys.PREFIX):
        raise InvalidPathError(f"File path must not start with '{folder_keys.PREFIX}'")
    source = Path(source_path)
    if not source.is_file():
        raise NotFoundError("Source file not found")
    return await create_leaf(
        db, subject_id, name, source.read_bytes(), filename=source.name, parent_id=parent_id
    )


async def rename_lesson(db: AsyncSession, lesson_id: int, name: str) -> Lesson:
    lesson = await get_lesson(db, lesson_id)
    lesson.name = name
    await _commit(db)
    return lesson


def lesson_real_path(lesson: Lesson) -> str | None:
    if lesson.is_container:
        return None
    path = folder_keys.strip_all_prefixes(lesson.image_path)
    return path if folder_keys.is_file_path(path) else None
