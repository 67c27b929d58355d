"""
Delete expired lab records directly against DATABASE_URL.
Run: python -m scripts.sweep_expired
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from labrecord.db.session import SessionLocal
from labrecord.core.errors import StoreError
from labrecord.services.record_store import sweep_expired
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        result = sweep_expired(db)
    except StoreError as e:
        logger.error(f"Sweep failed: {e}")
        return 1
    finally:
        db.close()

    if not result.ok:
        logger.error(f"Sweep finished with errors: deleted={result.deleted}, failed={result.failed}, first_error={result.first_error}")
        return 1

    logger.info(f"Sweep complete: deleted={result.deleted}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
