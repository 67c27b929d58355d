"""
Unit tests for the record store.
Tests upsert-by-course-title, sliding expiry, listing, removal, the expiry
sweep and error classification.
"""
import pytest
from datetime import datetime, timedelta
from sqlalchemy.exc import OperationalError, ProgrammingError

from labrecord.core.errors import (
    IndexUnavailable,
    PermissionDenied,
    StoreUnavailable,
    ValidationFailure,
)
from labrecord.db.models.document_record import DocumentRecord
from labrecord.services.record_store import (
    RECORD_TTL,
    classify_db_error,
    days_until_expiry,
    get_record,
    is_expiring_soon,
    list_records_for_user,
    probe_access,
    remove_record,
    sweep_expired,
    upsert_record,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)

SORT_EXPERIMENT = {"id": "1", "title": "Sort", "githubLink": "https://x/1"}


def save(db, user_id="u1", course_title="Algorithms", is_download=False, now=NOW, **overrides):
    return upsert_record(
        db,
        user_id,
        course_title,
        overrides.get("student_name", "Alice"),
        overrides.get("register_number", "R100"),
        overrides.get("experiments", [SORT_EXPERIMENT]),
        is_download=is_download,
        now=now,
    )


def records_for(db, user_id, course_title):
    return db.query(DocumentRecord).filter(
        DocumentRecord.user_id == user_id,
        DocumentRecord.course_title == course_title,
    ).all()


def test_first_save_creates_record(db):
    """Test the first save for a course creates a record with zero downloads."""
    record_id = save(db)
    record = db.get(DocumentRecord, record_id)

    assert record.user_id == "u1"
    assert record.course_title == "Algorithms"
    assert record.student_name == "Alice"
    assert record.register_number == "R100"
    assert record.experiments == [SORT_EXPERIMENT]
    assert record.download_count == 0
    assert record.created_at == NOW
    assert record.updated_at == NOW
    assert record.expires_at == NOW + timedelta(days=15)


def test_download_save_updates_same_record(db):
    """Test a second save with is_download=True updates the same record and counts the download."""
    first_id = save(db)
    second_id = save(db, is_download=True, now=NOW + timedelta(minutes=5))

    assert second_id == first_id
    record = db.get(DocumentRecord, first_id)
    assert record.download_count == 1
    assert len(records_for(db, "u1", "Algorithms")) == 1


def test_first_save_as_download_starts_count_at_one(db):
    record_id = save(db, is_download=True)
    assert db.get(DocumentRecord, record_id).download_count == 1


def test_repeated_saves_keep_one_record_and_count_downloads(db):
    """Test many saves leave exactly one record whose count equals the download saves."""
    flags = [False, True, True, False, True, False, False]
    for offset, is_download in enumerate(flags):
        save(db, is_download=is_download, now=NOW + timedelta(minutes=offset))

    records = records_for(db, "u1", "Algorithms")
    assert len(records) == 1
    assert records[0].download_count == sum(flags)


def test_plain_save_never_changes_download_count(db):
    record_id = save(db, is_download=True)
    save(db, is_download=False, now=NOW + timedelta(hours=1))
    save(db, is_download=False, now=NOW + timedelta(hours=2))

    assert db.get(DocumentRecord, record_id).download_count == 1


def test_update_overwrites_fields_and_keeps_created_at(db):
    record_id = save(db)
    later = NOW + timedelta(days=3)
    new_experiments = [
        {"id": "1", "title": "Merge Sort", "githubLink": "https://x/1", "date": "2026-03-04"},
        {"id": "2", "title": "Heaps", "githubLink": "https://x/2"},
    ]
    save(db, now=later, student_name="Alice B", register_number="R101", experiments=new_experiments)

    record = db.get(DocumentRecord, record_id)
    assert record.student_name == "Alice B"
    assert record.register_number == "R101"
    assert record.experiments == new_experiments
    assert record.created_at == NOW
    assert record.updated_at == later


def test_every_save_slides_expiry(db):
    """Test expiry is always now + 15 days at the last write, not from creation."""
    record_id = save(db)
    later = NOW + timedelta(days=10)
    save(db, now=later)

    record = db.get(DocumentRecord, record_id)
    assert record.expires_at == later + RECORD_TTL


def test_course_title_match_is_case_sensitive(db):
    first_id = save(db, course_title="Algorithms")
    second_id = save(db, course_title="algorithms")

    assert first_id != second_id


def test_same_course_for_different_users_is_separate(db):
    assert save(db, user_id="u1") != save(db, user_id="u2")


def test_upsert_accepts_experiment_models(db):
    from labrecord.schemas.record import Experiment

    record_id = save(db, experiments=[Experiment(id="7", title="Graphs", github_link="https://x/7")])

    assert db.get(DocumentRecord, record_id).experiments == [
        {"id": "7", "title": "Graphs", "githubLink": "https://x/7"}
    ]


@pytest.mark.parametrize("user_id,course_title", [("", "Algorithms"), ("u1", "")])
def test_upsert_requires_user_and_course(db, user_id, course_title):
    with pytest.raises(ValidationFailure):
        save(db, user_id=user_id, course_title=course_title)
    assert db.query(DocumentRecord).count() == 0


def test_index_error_falls_back_to_creating_record(db, monkeypatch):
    """Test a lookup failing for lack of an index still saves, as a new record."""
    existing_id = save(db)

    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("no such index: idx_user_course"))

    monkeypatch.setattr(db, "query", broken_query)
    new_id = save(db, is_download=True, now=NOW + timedelta(minutes=1))
    monkeypatch.undo()

    assert new_id != existing_id
    duplicates = records_for(db, "u1", "Algorithms")
    assert len(duplicates) == 2
    assert db.get(DocumentRecord, new_id).download_count == 1


def test_permission_error_on_lookup_is_raised(db, monkeypatch):
    def denied(*args, **kwargs):
        raise ProgrammingError("SELECT", {}, Exception("permission denied for table document_records"))

    monkeypatch.setattr(db, "query", denied)
    with pytest.raises(PermissionDenied):
        save(db)


def test_other_backend_error_is_store_unavailable(db, monkeypatch):
    def down(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("could not connect to server"))

    monkeypatch.setattr(db, "query", down)
    with pytest.raises(StoreUnavailable):
        save(db)


def test_list_returns_only_users_records_most_recent_first(db):
    """Test two courses for one user come back most recently updated first, without other users' records."""
    older_id = save(db, course_title="Algorithms", now=NOW)
    newer_id = save(db, course_title="Databases", now=NOW + timedelta(hours=1))
    save(db, user_id="u2", course_title="Networks", now=NOW + timedelta(hours=2))

    records = list_records_for_user(db, "u1")

    assert [record.id for record in records] == [newer_id, older_id]
    assert all(record.user_id == "u1" for record in records)


def test_list_moves_updated_record_to_front(db):
    first_id = save(db, course_title="Algorithms", now=NOW)
    second_id = save(db, course_title="Databases", now=NOW + timedelta(hours=1))
    save(db, course_title="Algorithms", now=NOW + timedelta(hours=2))

    assert [record.id for record in list_records_for_user(db, "u1")] == [first_id, second_id]


def test_list_uses_created_at_for_legacy_records(db):
    """Test records without updated_at sort by created_at."""
    legacy = DocumentRecord(
        user_id="u1",
        course_title="Legacy",
        student_name="Alice",
        register_number="R100",
        experiments=[],
        created_at=NOW + timedelta(hours=5),
        updated_at=None,
        expires_at=NOW + timedelta(days=15),
        download_count=None,
    )
    db.add(legacy)
    db.commit()
    current_id = save(db, course_title="Algorithms", now=NOW + timedelta(hours=1))

    records = list_records_for_user(db, "u1")

    assert [record.id for record in records] == [legacy.id, current_id]
    assert records[0].last_modified == legacy.created_at
    assert records[0].downloads == 0


def test_list_ties_are_stable(db):
    first_id = save(db, course_title="A", now=NOW)
    second_id = save(db, course_title="B", now=NOW)

    first_call = [record.id for record in list_records_for_user(db, "u1")]
    second_call = [record.id for record in list_records_for_user(db, "u1")]

    assert first_call == second_call == [second_id, first_id]


def test_get_record_checks_owner(db):
    record_id = save(db)

    assert get_record(db, record_id, "u1").id == record_id
    assert get_record(db, 9999, "u1") is None
    with pytest.raises(PermissionDenied):
        get_record(db, record_id, "u2")


def test_remove_is_idempotent(db):
    """Test removing the same record twice does not raise."""
    record_id = save(db)

    assert remove_record(db, record_id) is True
    assert remove_record(db, record_id) is False
    assert db.get(DocumentRecord, record_id) is None


def test_remove_refuses_other_users_record(db):
    record_id = save(db, user_id="u1")

    with pytest.raises(PermissionDenied):
        remove_record(db, record_id, user_id="u2")
    assert db.get(DocumentRecord, record_id) is not None


def test_sweep_deletes_only_expired_records(db):
    """Test a record expired one second ago is swept and one expiring in a second is kept."""
    expired_id = save(db, course_title="Old", now=NOW - RECORD_TTL - timedelta(seconds=1))
    boundary_id = save(db, course_title="Boundary", now=NOW - RECORD_TTL)
    fresh_id = save(db, course_title="Fresh", now=NOW - RECORD_TTL + timedelta(seconds=1))
    other_user_id = save(db, user_id="u2", course_title="Old", now=NOW - timedelta(days=30))

    result = sweep_expired(db, now=NOW)

    assert result.ok
    assert result.deleted == 3
    assert result.failed == 0
    remaining = {record.id for record in db.query(DocumentRecord).all()}
    assert remaining == {fresh_id}
    assert expired_id not in remaining
    assert boundary_id not in remaining
    assert other_user_id not in remaining


def test_sweep_with_nothing_expired(db):
    save(db)
    result = sweep_expired(db, now=NOW)

    assert result.deleted == 0
    assert db.query(DocumentRecord).count() == 1


def test_sweep_continues_after_a_failed_delete(db, monkeypatch):
    """Test one failed delete doesn't stop the others and is reported."""
    for index in range(3):
        save(db, course_title=f"Course {index}", now=NOW - timedelta(days=20))

    original_commit = db.commit
    calls = {"count": 0}

    def flaky_commit():
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("DELETE FROM document_records", {}, Exception("database is locked"))
        return original_commit()

    monkeypatch.setattr(db, "commit", flaky_commit)
    result = sweep_expired(db, now=NOW)
    monkeypatch.undo()

    assert result.deleted == 2
    assert result.failed == 1
    assert isinstance(result.first_error, StoreUnavailable)
    assert not result.ok
    assert db.query(DocumentRecord).count() == 1


def test_probe_access_true_when_readable(db):
    assert probe_access(db, "u1") is True


def test_probe_access_false_when_denied(db, monkeypatch):
    def denied(*args, **kwargs):
        raise ProgrammingError("SELECT", {}, Exception("permission denied for table document_records"))

    monkeypatch.setattr(db, "query", denied)
    assert probe_access(db, "u1") is False


def test_probe_access_raises_on_other_faults(db, monkeypatch):
    def down(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly"))

    monkeypatch.setattr(db, "query", down)
    with pytest.raises(StoreUnavailable):
        probe_access(db, "u1")


def test_classify_db_error():
    denied = ProgrammingError("SELECT", {}, Exception("permission denied for table document_records"))
    missing_index = OperationalError("SELECT", {}, Exception("query requires an index"))
    other = OperationalError("SELECT", {}, Exception("timeout"))

    assert isinstance(classify_db_error(denied), PermissionDenied)
    assert isinstance(classify_db_error(missing_index, lookup=True), IndexUnavailable)
    assert isinstance(classify_db_error(missing_index), StoreUnavailable)
    assert isinstance(classify_db_error(other, lookup=True), StoreUnavailable)


def test_days_until_expiry():
    assert days_until_expiry(NOW + RECORD_TTL, now=NOW) == 15
    assert days_until_expiry(NOW + timedelta(days=2, hours=1), now=NOW) == 3
    assert days_until_expiry(NOW - timedelta(hours=1), now=NOW) == 0
    assert is_expiring_soon(NOW + timedelta(days=3), now=NOW) is True
    assert is_expiring_soon(NOW + timedelta(days=4), now=NOW) is False
