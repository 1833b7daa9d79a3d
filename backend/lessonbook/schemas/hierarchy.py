from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class NameIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class YearCreate(NameIn):
    seed_semesters: bool = True


class YearResponse(BaseModel):
    id: int
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SemesterResponse(BaseModel):
    id: int
    year_id: int
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SubjectCreate(NameIn):
    scope: Literal["single", "year", "everywhere"] = "single"


class SubjectResponse(BaseModel):
    id: int
    semester_id: int
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DeleteSummary(BaseModel):
    rows_deleted: int = 0
    files_attempted: int = 0
