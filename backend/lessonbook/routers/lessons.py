from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.database import get_db
from lessonbook.dependencies import http_error
from lessonbook.schemas.hierarchy import DeleteSummary
from lessonbook.schemas.lesson import BatchDeleteRequest, LessonResponse, LessonUpdate
from lessonbook.services import content_store, deletion, media
from lessonbook.services.errors import LessonbookError
from lessonbook.services.lesson_tree import to_response

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.get("/{lesson_id}", response_model=LessonResponse)
async def get_lesson(lesson_id: int, db: AsyncSession = Depends(get_db)) -> LessonResponse:
    try:
        lesson = await content_store.get_lesson(db, lesson_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return to_response(lesson)


@router.get("/{lesson_id}/children", response_model=list[LessonResponse])
async def list_children(lesson_id: int, db: AsyncSession = Depends(get_db)) -> list[LessonResponse]:
    try:
        lessons = await content_store.list_children(db, lesson_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return [to_response(lesson) for lesson in lessons]


@router.get("/{lesson_id}/file")
async def get_lesson_file(lesson_id: int, db: AsyncSession = Depends(get_db)) -> FileResponse:
    try:
        lesson = await content_store.get_lesson(db, lesson_id)
    except LessonbookError as e:
        raise http_error(e) from e
    path = content_store.lesson_real_path(lesson)
    if path is None or not media.exists(path):
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)


@router.patch("/{lesson_id}", response_model=LessonResponse)
async def rename_lesson(lesson_id: int, data: LessonUpdate, db: AsyncSession = Depends(get_db)) -> LessonResponse:
    try:
        lesson = await content_store.rename_lesson(db, lesson_id, data.name.strip())
    except LessonbookError as e:
        raise http_error(e) from e
    return to_response(lesson)


@router.delete("/{lesson_id}", response_model=DeleteSummary)
async def delete_lesson(lesson_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    """Delete a photo or a folder with everything inside it. Unknown ids are a no-op."""
    res = await deletion.deep_delete(db, lesson_id)
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.post("/batch-delete", response_model=DeleteSummary)
async def batch_delete_lessons(body: BatchDeleteRequest, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    res = await deletion.bulk_delete(db, body.lesson_ids)
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.post("/{lesson_id}/clear", response_model=DeleteSummary)
async def clear_folder(lesson_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    try:
        lesson = await content_store.get_lesson(db, lesson_id)
    except LessonbookError as e:
        raise http_error(e) from e
    if not lesson.is_container:
        raise HTTPException(status_code=400, detail="Lesson is not a folder")
    res = await deletion.clear_container(db, lesson_id)
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)
