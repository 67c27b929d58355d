"""
Record history endpoints.

Each signed-in user has at most one saved record per course title; saving
again updates it and pushes its expiry out by another 15 days.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from labrecord.core.auth_dependency import get_current_user
from labrecord.core.errors import PermissionDenied, StoreError, ValidationFailure
from labrecord.db.session import get_db
from labrecord.schemas.record import (
    AccessResponse,
    RecordListResponse,
    RecordResponse,
    SaveRecordRequest,
)
from labrecord.services import record_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["Records"])


def store_http_exception(error: Exception) -> HTTPException:
    """Translate a store error into the HTTP error shown to the client."""
    if isinstance(error, ValidationFailure):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
    if isinstance(error, PermissionDenied):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied for this record"
        )
    if isinstance(error, StoreError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Record store unavailable"
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unexpected error"
    )


@router.get("", status_code=status.HTTP_200_OK, response_model=RecordListResponse)
def list_records(
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List the authenticated user's saved records, most recently updated first.
    """
    try:
        records = record_store.list_records_for_user(db, user_id)
        logger.debug(f"Records listed: user_id={user_id}, total={len(records)}")
        return RecordListResponse(
            records=[RecordResponse.from_record(record) for record in records],
            total=len(records),
        )
    except (ValidationFailure, StoreError) as e:
        raise store_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list records: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list records"
        )


@router.put("", status_code=status.HTTP_200_OK, response_model=RecordResponse)
def save_record(
    payload: SaveRecordRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Save the form for the authenticated user.

    Updates the existing record with the same course title, or creates one.
    """
    try:
        record_id = record_store.upsert_record(
            db,
            user_id,
            payload.course_title,
            payload.student_name,
            payload.register_number,
            payload.experiments,
            is_download=payload.is_download,
        )
        record = record_store.get_record(db, record_id, user_id)
        return RecordResponse.from_record(record)
    except (ValidationFailure, StoreError) as e:
        raise store_http_exception(e)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save record: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save record"
        )


@router.get("/access", status_code=status.HTTP_200_OK, response_model=AccessResponse)
def check_access(
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Tell the client whether history can be read, so it can hide the history panel if not."""
    try:
        return AccessResponse(accessible=record_store.probe_access(db, user_id))
    except StoreError as e:
        raise store_http_exception(e)


@router.get("/{record_id}", status_code=status.HTTP_200_OK, response_model=RecordResponse)
def get_record(
    record_id: int,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get one saved record, e.g. to load it back into the form.

    Returns 404 if it doesn't exist, 403 if it belongs to another user.
    """
    try:
        record = record_store.get_record(db, record_id, user_id)
    except StoreError as e:
        raise store_http_exception(e)

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Record not found"
        )
    return RecordResponse.from_record(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(
    record_id: int,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Delete a saved record.

    Deleting a record that is already gone succeeds.
    """
    try:
        record_store.remove_record(db, record_id, user_id=user_id)
    except StoreError as e:
        raise store_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
