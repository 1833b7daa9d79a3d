"""Archive manifest (``manifest.json``) and import/export summaries."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LessonRow(BaseModel):
    """A lesson row exactly as stored; ``image_path`` keeps its source ids."""

    model_config = ConfigDict(extra="ignore")

    id: int
    subject_id: int | None = None
    name: str
    image_path: str | None = None
    is_container: bool = False
    created_at: str | None = None


class SubjectEntry(BaseModel):
    """Lesson entries stay raw; each is validated as a ``LessonRow`` on its own."""

    id: int
    name: str
    lessons: list[Any] = []


class SemesterEntry(BaseModel):
    id: int
    name: str
    subjects: list[SubjectEntry] = []


class YearEntry(BaseModel):
    id: int
    name: str
    semesters: list[SemesterEntry] = []


class Manifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exported_at: datetime | None = Field(default=None, alias="exportedAt")
    years: list[YearEntry] = []


class ExportResult(BaseModel):
    years: int = 0
    semesters: int = 0
    subjects: int = 0
    lessons: int = 0
    files: int = 0


class ImportResult(BaseModel):
    years_created: int = 0
    semesters_created: int = 0
    subjects_created: int = 0
    imported: int = 0
    skipped: int = 0


class SavedExport(BaseModel):
    path: str
    stats: ExportResult
