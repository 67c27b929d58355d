"""
Expiry sweep endpoints.

/cleanup-expired is the plain scheduled hook; /cron/cleanup is the variant for
an external scheduler and requires `Authorization: Bearer <CRON_SECRET>`.
"""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from labrecord.core import config
from labrecord.core.logging_config import sanitize_log_data
from labrecord.core.errors import StoreError
from labrecord.db.session import get_db
from labrecord.schemas.record import CleanupResponse
from labrecord.services.record_store import sweep_expired

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Maintenance"])


def _failure(details: str, deleted: int = 0, failed: int = 0) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Failed to clean up records",
            "details": details,
            "deleted": deleted,
            "failed": failed,
        },
    )


def run_cleanup(db: Session):
    try:
        result = sweep_expired(db)
    except StoreError as e:
        logger.error(f"Error during cleanup: {e}", exc_info=True)
        return _failure(str(e))

    if not result.ok:
        logger.error(
            f"Cleanup finished with errors: deleted={result.deleted}, failed={result.failed}, "
            f"first_error={result.first_error}"
        )
        return _failure(str(result.first_error), deleted=result.deleted, failed=result.failed)

    return CleanupResponse(
        success=True,
        message="Cleanup completed successfully",
        deleted=result.deleted,
    )


def is_authorized_cron_request(authorization: Optional[str]) -> bool:
    secret = config.CRON_SECRET
    if not secret or not authorization:
        return False
    return hmac.compare_digest(authorization, f"Bearer {secret}")


@router.api_route("/cleanup-expired", methods=["GET", "POST"], response_model=CleanupResponse)
def cleanup_expired(db: Session = Depends(get_db)):
    """Delete every expired record."""
    return run_cleanup(db)


@router.get("/cron/cleanup", response_model=CleanupResponse)
def cron_cleanup(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Scheduler entry point; rejects calls without the shared secret."""
    if not is_authorized_cron_request(authorization):
        caller = sanitize_log_data({
            "authorization": authorization,
            "client": request.client.host if request.client else None,
        })
        logger.warning(f"Rejected cron cleanup call with missing or wrong secret: {caller}")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "Unauthorized"},
        )
    return run_cleanup(db)
