from lessonbook.schemas.archive import ExportResult, ImportResult, Manifest
from lessonbook.schemas.hierarchy import SemesterResponse, SubjectResponse, YearResponse
from lessonbook.schemas.lesson import LessonResponse, LessonTree, LessonTreeResponse

__all__ = [
    "ExportResult",
    "ImportResult",
    "Manifest",
    "YearResponse",
    "SemesterResponse",
    "SubjectResponse",
    "LessonResponse",
    "LessonTree",
    "LessonTreeResponse",
]
