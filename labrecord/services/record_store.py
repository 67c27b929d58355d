"""
Record store for saved lab-record submissions.

Keeps at most one DocumentRecord per (user, course title) by upserting on the
course title, slides every record's expiry forward on each write, and sweeps
expired records in bulk. Backend faults are translated into the
PermissionDenied / StoreUnavailable taxonomy from labrecord.core.errors.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labrecord.core.errors import (
    IndexUnavailable,
    PermissionDenied,
    StoreError,
    StoreUnavailable,
    ValidationFailure,
)
from labrecord.db.models.document_record import DocumentRecord

logger = logging.getLogger(__name__)

RECORD_TTL = timedelta(days=15)
EXPIRING_SOON_DAYS = 3

_PERMISSION_MARKERS = ("permission denied", "insufficient privilege", "access denied")


@dataclass
class SweepResult:
    """Outcome of sweep_expired: how many deletes committed, how many failed, and the first failure."""
    deleted: int = 0
    failed: int = 0
    first_error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.first_error is None


def utcnow() -> datetime:
    """Current time as naive UTC, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_until_expiry(expires_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days (rounded up) until expiry; zero or negative once expired."""
    now = now or utcnow()
    return math.ceil((expires_at - now).total_seconds() / 86400)


def is_expiring_soon(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    return days_until_expiry(expires_at, now) <= EXPIRING_SOON_DAYS


def classify_db_error(error: SQLAlchemyError, lookup: bool = False) -> StoreError:
    """
    Map a SQLAlchemy error onto the store taxonomy.

    Args:
        error: The raised SQLAlchemy error
        lookup: True when the error came from the upsert lookup query; only
            then is an index complaint reported as IndexUnavailable
    """
    message = str(getattr(error, "orig", None) or error)
    lowered = message.lower()
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return PermissionDenied(message)
    if lookup and "index" in lowered:
        return IndexUnavailable(message)
    return StoreUnavailable(message)


def _experiments_payload(experiments: Iterable[Any]) -> List[dict]:
    payload = []
    for experiment in experiments or []:
        if hasattr(experiment, "model_dump"):
            payload.append(experiment.model_dump(by_alias=True, exclude_none=True))
        else:
            payload.append(dict(experiment))
    return payload


def _find_by_course(db: Session, user_id: str, course_title: str) -> Optional[DocumentRecord]:
    try:
        candidates = (
            db.query(DocumentRecord)
            .filter(DocumentRecord.user_id == user_id, DocumentRecord.course_title == course_title)
            .order_by(DocumentRecord.id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise classify_db_error(e, lookup=True) from e

    # Exact, case-sensitive match regardless of the column collation
    for record in candidates:
        if record.course_title == course_title:
            return record
    return None


def _create_record(
    db: Session,
    user_id: str,
    course_title: str,
    student_name: str,
    register_number: str,
    experiments: List[dict],
    is_download: bool,
    now: datetime,
) -> DocumentRecord:
    record = DocumentRecord(
        user_id=user_id,
        course_title=course_title,
        student_name=student_name,
        register_number=register_number,
        experiments=experiments,
        created_at=now,
        updated_at=now,
        expires_at=now + RECORD_TTL,
        download_count=1 if is_download else 0,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def upsert_record(
    db: Session,
    user_id: str,
    course_title: str,
    student_name: str,
    register_number: str,
    experiments: Iterable[Any],
    is_download: bool = False,
    now: Optional[datetime] = None,
) -> int:
    """
    Create or update the caller's record for a course.

    Args:
        db: Database session
        user_id: Owner of the record
        course_title: Matched exactly (case-sensitive) against existing records
        student_name: Student name
        register_number: Student register number
        experiments: Experiment models or dicts, in display order
        is_download: Increment download_count as part of this save
        now: Override the current time (naive UTC)

    Returns:
        Id of the created or updated record

    Raises:
        ValidationFailure: user_id or course_title is empty
        PermissionDenied: backend refused the write
        StoreUnavailable: any other backend fault
    """
    if not user_id:
        raise ValidationFailure("user_id is required")
    if not course_title:
        raise ValidationFailure("course_title is required")

    now = now or utcnow()
    payload = _experiments_payload(experiments)

    try:
        existing = _find_by_course(db, user_id, course_title)
    except IndexUnavailable as e:
        # Lookup can't run; fall back to creating a record even if that duplicates the course
        logger.warning(f"Record lookup unavailable, creating new record: user_id={user_id}, error={e}")
        try:
            record = _create_record(
                db, user_id, course_title, student_name, register_number, payload, is_download, now
            )
        except SQLAlchemyError as create_error:
            db.rollback()
            raise classify_db_error(create_error) from create_error
        logger.info(f"Record created (fallback): record_id={record.id}, user_id={user_id}")
        return record.id

    try:
        if existing is not None:
            existing.student_name = student_name
            existing.register_number = register_number
            existing.experiments = payload
            existing.updated_at = now
            existing.expires_at = now + RECORD_TTL
            existing.download_count = existing.downloads + (1 if is_download else 0)
            db.commit()
            logger.info(
                f"Record updated: record_id={existing.id}, user_id={user_id}, "
                f"download_count={existing.download_count}"
            )
            return existing.id

        record = _create_record(
            db, user_id, course_title, student_name, register_number, payload, is_download, now
        )
        logger.info(f"Record created: record_id={record.id}, user_id={user_id}")
        return record.id

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save record: user_id={user_id}, error={e}")
        raise classify_db_error(e) from e


def list_records_for_user(db: Session, user_id: str) -> List[DocumentRecord]:
    """
    All records owned by user_id, most recently updated first.

    Legacy rows without updated_at sort by created_at; ties go to the higher id.
    """
    try:
        return (
            db.query(DocumentRecord)
            .filter(DocumentRecord.user_id == user_id)
            .order_by(
                func.coalesce(DocumentRecord.updated_at, DocumentRecord.created_at).desc(),
                DocumentRecord.id.desc(),
            )
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to list records: user_id={user_id}, error={e}")
        raise classify_db_error(e) from e


def get_record(db: Session, record_id: int, user_id: str) -> Optional[DocumentRecord]:
    """Fetch one of the caller's records; None if absent, PermissionDenied if it belongs to someone else."""
    try:
        record = db.get(DocumentRecord, record_id)
    except SQLAlchemyError as e:
        db.rollback()
        raise classify_db_error(e) from e

    if record is not None and record.user_id != user_id:
        raise PermissionDenied(f"Record {record_id} belongs to another user")
    return record


def remove_record(db: Session, record_id: int, user_id: Optional[str] = None) -> bool:
    """
    Delete a record by id.

    Removing a record that does not exist is not an error. When user_id is
    given, only the owner may delete.

    Returns:
        True if a row was deleted, False if it was already absent
    """
    try:
        record = db.get(DocumentRecord, record_id)
        if record is None:
            logger.debug(f"Record already absent: record_id={record_id}")
            return False

        if user_id is not None and record.user_id != user_id:
            raise PermissionDenied(f"Record {record_id} belongs to another user")

        db.delete(record)
        db.commit()
        logger.info(f"Record deleted: record_id={record_id}, user_id={record.user_id}")
        return True

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to delete record: record_id={record_id}, error={e}")
        raise classify_db_error(e) from e


def sweep_expired(db: Session, now: Optional[datetime] = None) -> SweepResult:
    """
    Delete every record with expires_at <= now, across all users.

    Each delete commits on its own, so one failure doesn't undo the others.
    The delete re-checks expires_at, so a record refreshed after the snapshot
    survives.
    """
    now = now or utcnow()
    try:
        expired_ids = [
            row.id
            for row in db.query(DocumentRecord.id).filter(DocumentRecord.expires_at <= now).all()
        ]
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to query expired records: {e}")
        raise classify_db_error(e) from e

    result = SweepResult()
    for record_id in expired_ids:
        try:
            deleted = (
                db.query(DocumentRecord)
                .filter(DocumentRecord.id == record_id, DocumentRecord.expires_at <= now)
                .delete(synchronize_session=False)
            )
            db.commit()
            result.deleted += deleted
        except SQLAlchemyError as e:
            db.rollback()
            result.failed += 1
            if result.first_error is None:
                result.first_error = classify_db_error(e)
            logger.warning(f"Failed to delete expired record: record_id={record_id}, error={e}")

    logger.info(f"Expiry sweep finished: deleted={result.deleted}, failed={result.failed}")
    return result


def probe_access(db: Session, user_id: str) -> bool:
    """
    Minimal read to check the store is reachable and the caller may read it.

    Returns False on an authorization failure; other faults raise StoreUnavailable.
    """
    try:
        db.query(DocumentRecord.id).filter(DocumentRecord.user_id == user_id).limit(1).all()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        error = classify_db_error(e)
        if isinstance(error, PermissionDenied):
            logger.warning(f"Record store access denied: user_id={user_id}, error={e}")
            return False
        raise error from e
