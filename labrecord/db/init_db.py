from labrecord.db.session import engine
from labrecord.db.base import Base
import labrecord.db.models  # noqa: F401  (registers models)


def init_db(bind=None):
    """Create any missing tables."""
    Base.metadata.create_all(bind=bind or engine)
