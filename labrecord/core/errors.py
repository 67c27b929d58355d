"""
Error taxonomy shared by the record store, the renderers and the routes.
"""


class LabRecordError(Exception):
    """Base class for all application errors."""


class ValidationFailure(LabRecordError):
    """Caller-side problem detected before touching the store (e.g. missing course title)."""


class RenderFailure(LabRecordError):
    """The document renderer itself failed."""


class StoreError(LabRecordError):
    """Base class for record store faults."""


class PermissionDenied(StoreError):
    """Caller is not allowed to read or write these records."""


class StoreUnavailable(StoreError):
    """Network or backend fault."""


class IndexUnavailable(StoreError):
    """The backend cannot serve the lookup query (missing index / query capability).

    Only raised internally; upsert recovers from it by creating a new record.
    """
