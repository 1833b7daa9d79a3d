from sqlalchemy import select

from lessonbook.models import Lesson
from lessonbook.services import content_store, deletion, media


async def _ids(db) -> set[int]:
    result = await db.execute(select(Lesson.id))
    return set(result.scalars().all())


async def test_deleting_container_removes_whole_subtree(db, week_tree):
    res = await deletion.deep_delete(db, 10)

    assert res.rows_deleted == 4
    assert res.files_attempted == 2
    assert await _ids(db) == set()
    assert not week_tree["p1"].exists()
    assert not week_tree["p2"].exists()


async def test_deep_delete_attempts_every_leaf_file(db, week_tree, monkeypatch):
    attempted = []
    monkeypatch.setattr(media, "delete_file", lambda path: attempted.append(path) or True)

    await deletion.deep_delete(db, 10)

    assert sorted(attempted) == sorted([str(week_tree["p1"]), str(week_tree["p2"])])


async def test_deep_delete_is_noop_for_missing_id(db, week_tree):
    await deletion.deep_delete(db, 10)
    res = await deletion.deep_delete(db, 10)
    assert res == deletion.DeleteResult()
    res = await deletion.deep_delete(db, 12345)
    assert res.rows_deleted == 0


async def test_missing_files_do_not_block_row_deletion(db, week_tree):
    week_tree["p1"].unlink()
    res = await deletion.deep_delete(db, 10)
    assert res.rows_deleted == 4
    assert await _ids(db) == set()


async def test_deleting_nested_folder_keeps_siblings(db, week_tree):
    res = await deletion.deep_delete(db, 12)

    assert res.rows_deleted == 2
    assert await _ids(db) == {10, 11}
    assert week_tree["p1"].exists()
    assert not week_tree["p2"].exists()


async def test_deleting_leaf_only_removes_leaf(db, week_tree):
    res = await deletion.deep_delete(db, 11)
    assert res.rows_deleted == 1
    assert res.files_attempted == 1
    assert await _ids(db) == {10, 12, 13}


async def test_clear_container_keeps_container(db, week_tree):
    res = await deletion.clear_container(db, 10)
    assert res.rows_deleted == 3
    assert await _ids(db) == {10}


async def test_bulk_delete_tolerates_overlapping_selection(db, week_tree):
    res = await deletion.bulk_delete(db, [12, 13, 11, 13])
    assert res.rows_deleted == 3
    assert await _ids(db) == {10}


async def test_collect_subtree_survives_cycles(db, subject):
    db.add_all([
        Lesson(id=1, subject_id=subject.id, name="A", is_container=True, image_path="FC:2:__folder__"),
        Lesson(id=2, subject_id=subject.id, name="B", is_container=True, image_path="FC:1:__folder__"),
    ])
    await db.commit()
    res = await deletion.deep_delete(db, 1)
    assert res.rows_deleted == 2


async def test_delete_subject_removes_lesson_files(db, subject, week_tree):
    res = await content_store.delete_subject(db, subject.id)
    assert res.files_attempted == 2
    assert not week_tree["p1"].exists()
    assert await _ids(db) == set()


async def test_delete_year_cascades_and_cleans_files(db, subject, week_tree):
    semester = await content_store.get_semester(db, subject.semester_id)
    await content_store.delete_year(db, semester.year_id)

    assert await _ids(db) == set()
    assert not week_tree["p2"].exists()
    assert await content_store.list_years(db) == []
