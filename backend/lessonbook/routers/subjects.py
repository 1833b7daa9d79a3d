from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.config import settings
from lessonbook.database import get_db
from lessonbook.dependencies import http_error
from lessonbook.schemas.hierarchy import DeleteSummary, NameIn, SubjectResponse
from lessonbook.schemas.lesson import FolderCreate, LessonResponse, LessonTreeResponse, PhotoFromPath
from lessonbook.services import content_store
from lessonbook.services.errors import LessonbookError
from lessonbook.services.lesson_tree import get_lesson_tree, to_response

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.patch("/{subject_id}", response_model=SubjectResponse)
async def rename_subject(subject_id: int, data: NameIn, db: AsyncSession = Depends(get_db)) -> SubjectResponse:
    try:
        subject = await content_store.rename_subject(db, subject_id, data.name.strip())
    except LessonbookError as e:
        raise http_error(e) from e
    return SubjectResponse.model_validate(subject)


@router.delete("/{subject_id}", response_model=DeleteSummary)
async def delete_subject(subject_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    try:
        res = await content_store.delete_subject(db, subject_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.post("/{subject_id}/clear", response_model=DeleteSummary)
async def clear_subject(subject_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    try:
        res = await content_store.clear_subject(db, subject_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.get("/{subject_id}/lessons", response_model=list[LessonResponse])
async def list_root_lessons(subject_id: int, db: AsyncSession = Depends(get_db)) -> list[LessonResponse]:
    """Photos and folders directly under the subject, newest first."""
    try:
        await content_store.get_subject(db, subject_id)
    except LessonbookError as e:
        raise http_error(e) from e
    lessons = await content_store.list_root_lessons(db, subject_id)
    return [to_response(lesson) for lesson in lessons]


@router.get("/{subject_id}/tree", response_model=LessonTreeResponse)
async def get_tree(subject_id: int, db: AsyncSession = Depends(get_db)) -> LessonTreeResponse:
    try:
        await content_store.get_subject(db, subject_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return await get_lesson_tree(db, subject_id)


@router.post("/{subject_id}/folders", response_model=LessonResponse, status_code=201)
async def create_folder(
    subject_id: int, data: FolderCreate, db: AsyncSession = Depends(get_db)
) -> LessonResponse:
    try:
        lesson = await content_store.create_container(db, subject_id, data.name.strip(), data.parent_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return to_response(lesson)


@router.post("/{subject_id}/photos", response_model=LessonResponse, status_code=201)
async def upload_photo(
    subject_id: int,
    name: str = Form(..., min_length=1, max_length=255),
    parent_id: int | None = Form(None),
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
) -> LessonResponse:
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(data) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(status_code=413, detail="File too large")
    try:
        lesson = await content_store.create_leaf(
            db, subject_id, name.strip(), data, filename=file.filename, parent_id=parent_id
        )
    except LessonbookError as e:
        raise http_error(e) from e
    return to_response(lesson)


@router.post("/{subject_id}/photos/from-path", response_model=LessonResponse, status_code=201)
async def add_photo_from_path(
    subject_id: int, data: PhotoFromPath, db: AsyncSession = Depends(get_db)
) -> LessonResponse:
    """Copy an image already on the server's disk into the subject."""
    try:
        lesson = await content_store.create_leaf_from_file(
            db, subject_id, data.name.strip(), data.source_path, parent_id=data.parent_id
        )
    except LessonbookError as e:
        raise http_error(e) from e
    return to_response(lesson)
