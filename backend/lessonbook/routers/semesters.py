from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.database import get_db
from lessonbook.dependencies import http_error
from lessonbook.schemas.hierarchy import (
    DeleteSummary,
    NameIn,
    SemesterResponse,
    SubjectCreate,
    SubjectResponse,
)
from lessonbook.services import content_store
from lessonbook.services.errors import LessonbookError

router = APIRouter(prefix="/semesters", tags=["semesters"])


@router.patch("/{semester_id}", response_model=SemesterResponse)
async def rename_semester(semester_id: int, data: NameIn, db: AsyncSession = Depends(get_db)) -> SemesterResponse:
    try:
        semester = await content_store.rename_semester(db, semester_id, data.name.strip())
    except LessonbookError as e:
        raise http_error(e) from e
    return SemesterResponse.model_validate(semester)


@router.delete("/{semester_id}", response_model=DeleteSummary)
async def delete_semester(semester_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    try:
        res = await content_store.delete_semester(db, semester_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.post("/{semester_id}/clear", response_model=DeleteSummary)
async def clear_semester(semester_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    try:
        res = await content_store.clear_semester(db, semester_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.get("/{semester_id}/subjects", response_model=list[SubjectResponse])
async def list_subjects(semester_id: int, db: AsyncSession = Depends(get_db)) -> list[SubjectResponse]:
    try:
        await content_store.get_semester(db, semester_id)
    except LessonbookError as e:
        raise http_error(e) from e
    subjects = await content_store.list_subjects(db, semester_id)
    return [SubjectResponse.model_validate(s) for s in subjects]


@router.post("/{semester_id}/subjects", response_model=list[SubjectResponse], status_code=201)
async def create_subject(
    semester_id: int, data: SubjectCreate, db: AsyncSession = Depends(get_db)
) -> list[SubjectResponse]:
    """Create a subject; ``scope`` copies it to sibling or same-named semesters."""
    try:
        subjects = await content_store.create_subject(db, semester_id, data.name.strip(), data.scope)
    except LessonbookError as e:
        raise http_error(e) from e
    return [SubjectResponse.model_validate(s) for s in subjects]
