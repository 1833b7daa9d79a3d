import io
import json
from zipfile import ZipFile

import pytest
from sqlalchemy.exc import OperationalError

from conftest import count_rows, lessons_by_name
from lessonbook.models import Lesson
from lessonbook.schemas.archive import LessonRow
from lessonbook.services import content_store, folder_keys
from lessonbook.services.archive_export import MANIFEST_NAME, export_archive
from lessonbook.services.archive_import import import_archive, insertion_order, plan_key_rewrites
from lessonbook.services.errors import ArchiveError, StoreError


async def _export(db) -> io.BytesIO:
    buf = io.BytesIO()
    await export_archive(db, buf)
    buf.seek(0)
    return buf


def _archive(manifest: dict, files: dict[str, bytes] | None = None) -> io.BytesIO:
    buf = io.BytesIO()
    with ZipFile(buf, "w") as zf:
        zf.writestr(MANIFEST_NAME, json.dumps(manifest))
        for name, data in (files or {}).items():
            zf.writestr(name, data)
    buf.seek(0)
    return buf


def _manifest(lessons: list[dict]) -> dict:
    return {
        "exportedAt": "2026-01-01T00:00:00Z",
        "years": [{
            "id": 1,
            "name": "2025",
            "semesters": [{
                "id": 1,
                "name": "Autumn",
                "subjects": [{"id": 1, "name": "Biology", "lessons": lessons}],
            }],
        }],
    }


def test_plan_key_rewrites_week_scenario():
    lessons = [
        LessonRow(id=10, name="Week 1", is_container=True, image_path=None),
        LessonRow(id=11, name="Page 1", image_path="FC:10:/files/p1.jpg"),
        LessonRow(id=12, name="Day A", is_container=True, image_path="FC:10:__folder__"),
        LessonRow(id=13, name="Page 2", image_path="FC:12:/files/p2.jpg"),
    ]
    id_map = {10: 110, 11: 111, 12: 112, 13: 113}
    fresh = {11: "/media/p1_new.jpg", 13: "/media/p2_new.jpg"}

    updates = plan_key_rewrites(lessons, id_map, fresh)

    assert updates == {
        111: "FC:110:/media/p1_new.jpg",
        112: "FC:110:__folder__",
        113: "FC:112:/media/p2_new.jpg",
    }


def test_plan_key_rewrites_keeps_dangling_parent():
    lessons = [LessonRow(id=3, name="Lost", image_path="FC:99:/files/x.jpg")]
    updates = plan_key_rewrites(lessons, {3: 30}, {3: "/media/x.jpg"})
    assert updates == {30: "FC:99:/media/x.jpg"}


def test_insertion_order_puts_root_folders_first():
    lessons = [
        LessonRow(id=1, name="nested leaf", image_path="FC:3:/a.jpg"),
        LessonRow(id=2, name="nested folder", is_container=True, image_path="FC:3:__folder__"),
        LessonRow(id=3, name="root folder", is_container=True, image_path=None),
        LessonRow(id=4, name="root leaf", image_path="/b.jpg"),
    ]
    assert [lesson.id for lesson in insertion_order(lessons)] == [3, 1, 2, 4]


async def test_week_scenario_remaps_parents(db, week_tree, dest_db, dest_store):
    # Shift destination ids so that source ids cannot line up by accident.
    year = await content_store.create_year(dest_db, "Existing", seed_semesters=False)
    semester = await content_store.create_semester(dest_db, year.id, "S")
    other = (await content_store.create_subject(dest_db, semester.id, "Other"))[0]
    for i in range(20):
        await content_store.create_container(dest_db, other.id, f"pad {i}")

    result = await import_archive(dest_db, await _export(db))

    assert result.imported == 4
    assert result.skipped == 0
    by_name = await lessons_by_name(dest_store)
    week = by_name["Week 1"][0]
    page1 = by_name["Page 1"][0]
    day = by_name["Day A"][0]
    page2 = by_name["Page 2"][0]
    assert week.id != 10
    assert week.image_path is None
    assert day.image_path == f"FC:{week.id}:__folder__"
    assert page1.image_path.startswith(f"FC:{week.id}:")
    assert page2.image_path.startswith(f"FC:{day.id}:")

    fresh1 = folder_keys.real_path(page1.image_path, week.id)
    fresh2 = folder_keys.real_path(page2.image_path, day.id)
    assert fresh1 != str(week_tree["p1"])
    with open(fresh1, "rb") as fh:
        assert fh.read() == b"page-one"
    with open(fresh2, "rb") as fh:
        assert fh.read() == b"page-two"
    assert [c.id for c in await content_store.list_children(dest_db, week.id)] != []


async def test_round_trip_into_empty_store(db, store, week_tree, subject, files_dir, dest_db, dest_store):
    root = files_dir / "root.png"
    root.write_bytes(b"root-photo")
    await content_store.create_leaf_from_file(db, subject.id, "Cover", str(root))
    await content_store.create_year(db, "2026")

    await import_archive(dest_db, await _export(db))

    assert await count_rows(dest_store) == await count_rows(store)
    cover = (await lessons_by_name(dest_store))["Cover"][0]
    assert folder_keys.is_root(cover.image_path)
    with open(cover.image_path, "rb") as fh:
        assert fh.read() == b"root-photo"


async def test_reimport_merges_containers_but_duplicates_lessons(db, week_tree, dest_db, dest_store):
    archive = (await _export(db)).getvalue()

    first = await import_archive(dest_db, io.BytesIO(archive))
    second = await import_archive(dest_db, io.BytesIO(archive))

    assert first.years_created == 1
    assert second.years_created == 0
    assert second.semesters_created == 0
    assert second.subjects_created == 0
    counts = await count_rows(dest_store)
    assert counts["years"] == 1
    assert counts["semesters"] == 1
    assert counts["subjects"] == 1
    assert counts["lessons"] == 8

    # each import keeps its own parent links
    by_name = await lessons_by_name(dest_store)
    weeks = {w.id for w in by_name["Week 1"]}
    for page in by_name["Page 1"]:
        assert folder_keys.parent_id_of(page.image_path) in weeks


async def test_root_leaf_and_folder_import(dest_db, dest_store):
    archive = _archive(
        _manifest([
            {"id": 5, "name": "Photo", "image_path": "/files/a.jpg", "is_container": 0},
            {"id": 6, "name": "Folder", "image_path": None, "is_container": 1},
        ]),
        {"files/5.jpg": b"aaa"},
    )

    result = await import_archive(dest_db, archive)

    assert result.imported == 2
    by_name = await lessons_by_name(dest_store)
    photo = by_name["Photo"][0]
    folder = by_name["Folder"][0]
    assert folder.is_container
    assert folder.image_path is None
    assert photo.image_path != "/files/a.jpg"
    assert folder_keys.is_root(photo.image_path)
    assert "_5." in photo.image_path


async def test_dangling_parent_is_kept_literally(dest_db, dest_store):
    archive = _archive(
        _manifest([
            {"id": 3, "name": "Lost", "image_path": "FC:99:/files/x.jpg", "is_container": False},
            {"id": 4, "name": "Lost folder", "image_path": "FC:99:__folder__", "is_container": True},
        ]),
        {"files/3.jpg": b"x"},
    )

    result = await import_archive(dest_db, archive)

    assert result.imported == 2
    by_name = await lessons_by_name(dest_store)
    assert by_name["Lost"][0].image_path.startswith("FC:99:")
    assert by_name["Lost folder"][0].image_path == "FC:99:__folder__"


async def test_missing_blob_and_bad_rows_are_skipped(dest_db, dest_store):
    archive = _archive(
        _manifest([
            {"id": 1, "name": "No blob", "image_path": "/files/none.jpg", "is_container": False},
            {"id": 2, "name": "Marker leaf", "image_path": "FC:5:__folder__", "is_container": False},
            {"id": 3, "name": "Empty leaf", "image_path": None, "is_container": False},
            {"id": 4, "name": "Good", "image_path": "/files/ok.gif", "is_container": False},
        ]),
        {"files/4.gif": b"gif"},
    )

    result = await import_archive(dest_db, archive)

    assert result.imported == 1
    assert result.skipped == 3
    assert list((await lessons_by_name(dest_store)).keys()) == ["Good"]


async def test_existing_names_are_reused(dest_db, dest_store):
    year = await content_store.create_year(dest_db, "2025", seed_semesters=False)
    semester = await content_store.create_semester(dest_db, year.id, "Autumn")
    subject = (await content_store.create_subject(dest_db, semester.id, "Biology"))[0]

    await import_archive(dest_db, _archive(_manifest([
        {"id": 6, "name": "Folder", "image_path": None, "is_container": True},
    ])))

    folder = (await lessons_by_name(dest_store))["Folder"][0]
    assert folder.subject_id == subject.id
    assert (await count_rows(dest_store))["subjects"] == 1


async def test_unreadable_archive_is_rejected(dest_db):
    with pytest.raises(ArchiveError):
        await import_archive(dest_db, io.BytesIO(b"not a zip"))


async def test_archive_without_manifest_is_rejected(dest_db):
    buf = io.BytesIO()
    with ZipFile(buf, "w") as zf:
        zf.writestr("files/1.jpg", b"x")
    buf.seek(0)
    with pytest.raises(ArchiveError):
        await import_archive(dest_db, buf)


async def test_invalid_manifest_is_rejected(dest_db):
    buf = io.BytesIO()
    with ZipFile(buf, "w") as zf:
        zf.writestr(MANIFEST_NAME, "{not json")
    buf.seek(0)
    with pytest.raises(ArchiveError):
        await import_archive(dest_db, buf)


async def test_lesson_rows_ignore_unknown_fields(dest_db, dest_store):
    await import_archive(dest_db, _archive(_manifest([
        {"id": 6, "name": "Folder", "image_path": None, "is_container": True, "color": "red"},
    ])))
    assert (await count_rows(dest_store))["lessons"] == 1
    assert isinstance((await lessons_by_name(dest_store))["Folder"][0], Lesson)


async def test_uppercase_extension_blob_is_found(dest_db, dest_store):
    archive = _archive(
        _manifest([{"id": 5, "name": "Camera", "image_path": "/DCIM/IMG_1.JPG", "is_container": False}]),
        {"files/5.JPG": b"raw"},
    )

    result = await import_archive(dest_db, archive)

    assert result.imported == 1
    assert result.skipped == 0
    photo = (await lessons_by_name(dest_store))["Camera"][0]
    assert photo.image_path.endswith(".JPG")


async def test_malformed_lesson_entry_skips_only_that_row(dest_db, dest_store):
    archive = _archive(_manifest([
        {"id": 6, "name": "Folder", "image_path": None, "is_container": True},
        {"id": 7, "name": None, "image_path": "FC:6:__folder__", "is_container": True},
        "not an object",
    ]))

    result = await import_archive(dest_db, archive)

    assert result.imported == 1
    assert result.skipped == 2
    assert list((await lessons_by_name(dest_store)).keys()) == ["Folder"]


async def test_failed_commit_removes_saved_files(dest_db, dest_store, media_dir, monkeypatch):
    async def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(dest_db, "commit", broken_commit)
    archive = _archive(
        _manifest([{"id": 5, "name": "Photo", "image_path": "/files/a.jpg", "is_container": False}]),
        {"files/5.jpg": b"aaa"},
    )

    with pytest.raises(StoreError):
        await import_archive(dest_db, archive)

    assert list(media_dir.glob("*")) == []
    monkeypatch.undo()
    assert (await count_rows(dest_store))["lessons"] == 0
