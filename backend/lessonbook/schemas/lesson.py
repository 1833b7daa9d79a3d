from datetime import datetime

from pydantic import BaseModel, Field


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    parent_id: int | None = None


class PhotoFromPath(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    source_path: str = Field(min_length=1)
    parent_id: int | None = None


class LessonUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class BatchDeleteRequest(BaseModel):
    lesson_ids: list[int]


class LessonResponse(BaseModel):
    id: int
    subject_id: int
    name: str
    is_container: bool
    image_path: str | None
    parent_id: int | None = None
    file_path: str | None = None
    created_at: datetime


class LessonTree(BaseModel):
    id: int
    name: str
    is_container: bool
    file_path: str | None = None
    orphaned: bool = False
    children: list["LessonTree"] = []


class LessonTreeResponse(BaseModel):
    subject_id: int
    roots: list[LessonTree] = []


LessonTree.model_rebuild()
