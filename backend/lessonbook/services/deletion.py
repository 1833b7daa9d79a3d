"""Recursive deletion of lessons together with their image files.

Folder nesting is encoded in ``image_path`` and invisible to the database
cascade, so descendants of a container are found and removed here. The
subject's lessons are loaded once and walked through an id -> children map.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.models import Lesson
from lessonbook.services import folder_keys, media

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    rows_deleted: int = 0
    files_attempted: int = 0

    def __add__(self, other: "DeleteResult") -> "DeleteResult":
        return DeleteResult(
            rows_deleted=self.rows_deleted + other.rows_deleted,
            files_attempted=self.files_attempted + other.files_attempted,
        )


def children_by_parent(lessons: list[Lesson]) -> dict[int, list[Lesson]]:
    by_parent: dict[int, list[Lesson]] = defaultdict(list)
    for lesson in lessons:
        parent_id = folder_keys.parent_id_of(lesson.image_path)
        if parent_id is not None:
            by_parent[parent_id].append(lesson)
    return by_parent


def collect_subtree(lesson: Lesson, by_parent: dict[int, list[Lesson]]) -> list[Lesson]:
    """Descendants first, ``lesson`` last. Leaves never have children."""
    out: list[Lesson] = []
    seen: set[int] = {lesson.id}

    def _walk(node: Lesson) -> None:
        if node.is_container:
            for child in by_parent.get(node.id, []):
                if child.id in seen:
                    continue
                seen.add(child.id)
                _walk(child)
        out.append(node)

    _walk(lesson)
    return out


def delete_lesson_file(lesson: Lesson) -> bool:
    """Try to delete the leaf's real file. Returns True if a deletion was attempted."""
    if lesson.is_container:
        return False
    path = folder_keys.strip_all_prefixes(lesson.image_path)
    if not folder_keys.is_file_path(path):
        return False
    media.delete_file(path)
    return True


async def _subject_lessons(db: AsyncSession, subject_id: int) -> list[Lesson]:
    result = await db.execute(select(Lesson).where(Lesson.subject_id == subject_id))
    return list(result.scalars().all())


async def _delete_rows(db: AsyncSession, lessons: list[Lesson]) -> DeleteResult:
    res = DeleteResult()
    for lesson in lessons:
        if delete_lesson_file(lesson):
            res.files_attempted += 1
    ids = [lesson.id for lesson in lessons]
    if ids:
        await db.execute(delete(Lesson).where(Lesson.id.in_(ids)))
        res.rows_deleted = len(ids)
    return res


async def _deep_delete(db: AsyncSession, lesson_id: int, keep_root: bool = False) -> DeleteResult:
    result = await db.execute(select(Lesson).where(Lesson.id == lesson_id))
    lesson = result.scalar_one_or_none()
    if lesson is None:
        return DeleteResult()
    if lesson.is_container:
        by_parent = children_by_parent(await _subject_lessons(db, lesson.subject_id))
        doomed = collect_subtree(lesson, by_parent)
    else:
        doomed = [lesson]
    if keep_root:
        doomed = [item for item in doomed if item.id != lesson.id]
    return await _delete_rows(db, doomed)


async def deep_delete(db: AsyncSession, lesson_id: int) -> DeleteResult:
    """Delete a lesson and, for a container, all of its transitive descendants.

    Missing ids are a no-op.
    """
    res = await _deep_delete(db, lesson_id)
    await db.commit()
    if res.rows_deleted:
        logger.info("Lesson deleted", extra={"lesson_id": lesson_id, "rows": res.rows_deleted})
    return res


async def bulk_delete(db: AsyncSession, lesson_ids: list[int]) -> DeleteResult:
    total = DeleteResult()
    for lesson_id in dict.fromkeys(lesson_ids):
        total = total + await _deep_delete(db, lesson_id)
    await db.commit()
    return total


async def clear_container(db: AsyncSession, container_id: int) -> DeleteResult:
    """Delete everything inside a container but keep the container row."""
    res = await _deep_delete(db, container_id, keep_root=True)
    await db.commit()
    return res


async def delete_lessons_in_subjects(db: AsyncSession, subject_ids: list[int]) -> DeleteResult:
    """Remove every lesson of the given subjects, files included. Does not commit."""
    if not subject_ids:
        return DeleteResult()
    result = await db.execute(select(Lesson).where(Lesson.subject_id.in_(subject_ids)))
    return await _delete_rows(db, list(result.scalars().all()))
