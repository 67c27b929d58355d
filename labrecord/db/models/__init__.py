"""
Database models module.

Importing this package registers every model with Base.metadata before table
creation and migrations.
"""
from labrecord.db.models.document_record import DocumentRecord

__all__ = [
    "DocumentRecord",
]
