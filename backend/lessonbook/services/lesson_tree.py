"""Service to build the folder tree of a subject."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.models import Lesson
from lessonbook.schemas.lesson import LessonResponse, LessonTree, LessonTreeResponse
from lessonbook.services import folder_keys


def to_response(lesson: Lesson) -> LessonResponse:
    path = None
    if not lesson.is_container:
        path = folder_keys.strip_all_prefixes(lesson.image_path) or None
    return LessonResponse(
        id=lesson.id,
        subject_id=lesson.subject_id,
        name=lesson.name,
        is_container=lesson.is_container,
        image_path=lesson.image_path,
        parent_id=folder_keys.parent_id_of(lesson.image_path),
        file_path=path,
        created_at=lesson.created_at,
    )


async def get_lesson_tree(db: AsyncSession, subject_id: int) -> LessonTreeResponse:
    """Build full lesson tree for a subject.

    Nested items whose parent is missing or not a folder are listed at the
    root with ``orphaned=True``.
    """
    result = await db.execute(
        select(Lesson)
        .where(Lesson.subject_id == subject_id)
        .order_by(Lesson.created_at.desc(), Lesson.id.desc())
    )
    lessons = list(result.scalars().all())

    node_map: dict[int, LessonTree] = {}
    for lesson in lessons:
        node_map[lesson.id] = LessonTree(
            id=lesson.id,
            name=lesson.name,
            is_container=lesson.is_container,
            file_path=None if lesson.is_container else folder_keys.strip_all_prefixes(lesson.image_path) or None,
            children=[],
        )
    containers = {lesson.id for lesson in lessons if lesson.is_container}

    roots: list[LessonTree] = []
    for lesson in lessons:
        node = node_map[lesson.id]
        parent_id = folder_keys.parent_id_of(lesson.image_path)
        if parent_id is None:
            roots.append(node)
        elif parent_id in containers and parent_id != lesson.id:
            node_map[parent_id].children.append(node)
        else:
            node.orphaned = True
            roots.append(node)

    return LessonTreeResponse(subject_id=subject_id, roots=roots)
