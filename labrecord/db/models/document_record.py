"""
DocumentRecord model - one saved lab-record submission per (user, course title).
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index

from labrecord.db.base import Base


class DocumentRecord(Base):
    """
    Saved form submission scoped to a user.

    Uniqueness of (user_id, course_title) is maintained by the record store's
    upsert, not by a constraint. Timestamps are naive UTC.
    """
    __tablename__ = "document_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)

    course_title = Column(String, nullable=False)
    student_name = Column(String, nullable=False, default="")
    register_number = Column(String, nullable=False, default="")

    # Ordered list of {"id", "title", "githubLink", "date"?}; position + 1 = experiment number
    experiments = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False)
    # NULL on rows written before these columns existed
    updated_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    download_count = Column(Integer, nullable=True, default=0)

    __table_args__ = (
        Index('idx_user_course', 'user_id', 'course_title'),
    )

    @property
    def last_modified(self):
        """updated_at, falling back to created_at for legacy rows."""
        return self.updated_at or self.created_at

    @property
    def downloads(self) -> int:
        return self.download_count or 0

    def __repr__(self):
        return f"<DocumentRecord(id={self.id}, user_id='{self.user_id}', course_title='{self.course_title}')>"
