from pathlib import Path

import pytest
from sqlalchemy import select

from lessonbook.config import settings
from lessonbook.database import Store
from lessonbook.models import Lesson, Semester, Subject, Year
from lessonbook.services import content_store


@pytest.fixture(autouse=True)
def media_dir(tmp_path, monkeypatch) -> Path:
    path = tmp_path / "media"
    monkeypatch.setattr(settings, "media_dir", str(path))
    monkeypatch.setattr(settings, "export_dir", str(tmp_path / "exports"))
    return path


@pytest.fixture
def files_dir(tmp_path) -> Path:
    path = tmp_path / "files"
    path.mkdir()
    return path


async def _open_store(path: Path) -> Store:
    store = Store(f"sqlite+aiosqlite:///{path}")
    await store.create_all()
    return store


@pytest.fixture
async def store(tmp_path):
    store = await _open_store(tmp_path / "source.db")
    yield store
    await store.close()


@pytest.fixture
async def dest_store(tmp_path):
    store = await _open_store(tmp_path / "dest.db")
    yield store
    await store.close()


@pytest.fixture
async def db(store):
    async with store.session() as session:
        yield session


@pytest.fixture
async def dest_db(dest_store):
    async with dest_store.session() as session:
        yield session


@pytest.fixture
async def subject(db) -> Subject:
    year = await content_store.create_year(db, "2025", seed_semesters=False)
    semester = await content_store.create_semester(db, year.id, "Autumn")
    created = await content_store.create_subject(db, semester.id, "Biology")
    return created[0]


@pytest.fixture
async def week_tree(db, subject, files_dir) -> dict[str, Path]:
    """Folder "Week 1" (10) > "Page 1" (11), folder "Day A" (12) > "Page 2" (13)."""
    p1 = files_dir / "p1.jpg"
    p2 = files_dir / "p2.jpg"
    p1.write_bytes(b"page-one")
    p2.write_bytes(b"page-two")
    db.add_all([
        Lesson(id=10, subject_id=subject.id, name="Week 1", is_container=True, image_path=None),
        Lesson(id=11, subject_id=subject.id, name="Page 1", is_container=False, image_path=f"FC:10:{p1}"),
        Lesson(id=12, subject_id=subject.id, name="Day A", is_container=True, image_path="FC:10:__folder__"),
        Lesson(id=13, subject_id=subject.id, name="Page 2", is_container=False, image_path=f"FC:12:{p2}"),
    ])
    await db.commit()
    return {"p1": p1, "p2": p2}


async def count_rows(store: Store) -> dict[str, int]:
    async with store.session() as session:
        counts = {}
        for model in (Year, Semester, Subject, Lesson):
            result = await session.execute(select(model))
            counts[model.__tablename__] = len(result.scalars().all())
        return counts


async def lessons_by_name(store: Store) -> dict[str, list[Lesson]]:
    async with store.session() as session:
        result = await session.execute(select(Lesson).order_by(Lesson.id))
        out: dict[str, list[Lesson]] = {}
        for lesson in result.scalars().all():
            out.setdefault(lesson.name, []).append(lesson)
        return out

