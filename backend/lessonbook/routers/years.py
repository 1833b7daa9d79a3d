from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lessonbook.database import get_db
from lessonbook.dependencies import http_error
from lessonbook.schemas.hierarchy import (
    DeleteSummary,
    NameIn,
    SemesterResponse,
    YearCreate,
    YearResponse,
)
from lessonbook.services import content_store
from lessonbook.services.errors import LessonbookError

router = APIRouter(prefix="/years", tags=["years"])


@router.get("", response_model=list[YearResponse])
async def list_years(db: AsyncSession = Depends(get_db)) -> list[YearResponse]:
    years = await content_store.list_years(db)
    return [YearResponse.model_validate(y) for y in years]


@router.post("", response_model=YearResponse, status_code=201)
async def create_year(data: YearCreate, db: AsyncSession = Depends(get_db)) -> YearResponse:
    try:
        year = await content_store.create_year(db, data.name.strip(), seed_semesters=data.seed_semesters)
    except LessonbookError as e:
        raise http_error(e) from e
    return YearResponse.model_validate(year)


@router.patch("/{year_id}", response_model=YearResponse)
async def rename_year(year_id: int, data: NameIn, db: AsyncSession = Depends(get_db)) -> YearResponse:
    try:
        year = await content_store.rename_year(db, year_id, data.name.strip())
    except LessonbookError as e:
        raise http_error(e) from e
    return YearResponse.model_validate(year)


@router.delete("/{year_id}", response_model=DeleteSummary)
async def delete_year(year_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    try:
        res = await content_store.delete_year(db, year_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.post("/{year_id}/clear", response_model=DeleteSummary)
async def clear_year(year_id: int, db: AsyncSession = Depends(get_db)) -> DeleteSummary:
    """Remove every semester of the year (and everything below), keeping the year."""
    try:
        res = await content_store.clear_year(db, year_id)
    except LessonbookError as e:
        raise http_error(e) from e
    return DeleteSummary(rows_deleted=res.rows_deleted, files_attempted=res.files_attempted)


@router.get("/{year_id}/semesters", response_model=list[SemesterResponse])
async def list_semesters(year_id: int, db: AsyncSession = Depends(get_db)) -> list[SemesterResponse]:
    try:
        await content_store.get_year(db, year_id)
    except LessonbookError as e:
        raise http_error(e) from e
    semesters = await content_store.list_semesters(db, year_id)
    return [SemesterResponse.model_validate(s) for s in semesters]


@router.post("/{year_id}/semesters", response_model=SemesterResponse, status_code=201)
async def create_semester(year_id: int, data: NameIn, db: AsyncSession = Depends(get_db)) -> SemesterResponse:
    try:
        semester = await content_store.create_semester(db, year_id, data.name.strip())
    except LessonbookError as e:
        raise http_error(e) from e
    return SemesterResponse.model_validate(semester)
