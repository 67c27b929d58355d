"""
Pydantic schemas for the lab-record form, saved records and maintenance endpoints.

Field names are camelCase on the wire (courseTitle, githubLink, ...) and
snake_case in Python.
"""
import uuid
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Experiment(CamelModel):
    """One row of the table of contents."""
    id: str = Field(..., description="Client-assigned id, unique within a record")
    title: str = Field("", description="Experiment title")
    github_link: str = Field("", description="Repository link, also encoded in the QR code")
    date: Optional[str] = Field(None, description="Free-form date string")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        # Older clients sent Date.now() numbers as ids
        if isinstance(value, int):
            return str(value)
        return value


def new_experiment() -> Experiment:
    """Blank experiment row with a fresh id, as added by the form's "Add experiment" button."""
    return Experiment(id=uuid.uuid4().hex, title="", github_link="")


class FormState(CamelModel):
    """
    Serializable state of the generator form.

    Passed by value into the record store and the renderers.
    """
    course_title: str = Field("", description="Course title; together with the user id it identifies a record")
    student_name: str = Field("", description="Student name")
    register_number: str = Field("", description="Student register number")
    experiments: List[Experiment] = Field(default_factory=list, description="Experiments in display order")

    @field_validator("experiments")
    @classmethod
    def unique_experiment_ids(cls, experiments: List[Experiment]) -> List[Experiment]:
        seen = set()
        for experiment in experiments:
            if experiment.id in seen:
                raise ValueError(f"Duplicate experiment id: {experiment.id}")
            seen.add(experiment.id)
        return experiments

    @classmethod
    def from_record(cls, record) -> "FormState":
        """Load a saved DocumentRecord back into the form."""
        return cls(
            course_title=record.course_title,
            student_name=record.student_name or "",
            register_number=record.register_number or "",
            experiments=[Experiment.model_validate(exp) for exp in (record.experiments or [])],
        )

    def experiments_payload(self) -> List[dict]:
        """Experiments as stored in the JSON column."""
        return [exp.model_dump(by_alias=True, exclude_none=True) for exp in self.experiments]


class SaveRecordRequest(FormState):
    """Schema for saving (upserting) a record."""
    is_download: bool = Field(False, description="Count this save as a download")


class RenderRequest(FormState):
    """Schema for the document generation endpoints."""
    save_history: bool = Field(True, description="Record the download in the caller's history when authenticated")


class RecordResponse(CamelModel):
    """Schema for a saved record."""
    id: int = Field(..., description="Record ID")
    user_id: str = Field(..., description="Owner user ID")
    course_title: str
    student_name: str
    register_number: str
    experiments: List[Experiment]
    created_at: datetime
    updated_at: datetime = Field(..., description="Last write; equals createdAt for legacy records")
    expires_at: datetime
    download_count: int = 0
    days_until_expiry: int = Field(..., description="Whole days left before the sweep removes this record")
    expiring_soon: bool

    @classmethod
    def from_record(cls, record, now: Optional[datetime] = None) -> "RecordResponse":
        from labrecord.services.record_store import days_until_expiry, is_expiring_soon

        return cls(
            id=record.id,
            user_id=record.user_id,
            course_title=record.course_title,
            student_name=record.student_name or "",
            register_number=record.register_number or "",
            experiments=[Experiment.model_validate(exp) for exp in (record.experiments or [])],
            created_at=record.created_at,
            updated_at=record.last_modified,
            expires_at=record.expires_at,
            download_count=record.downloads,
            days_until_expiry=days_until_expiry(record.expires_at, now),
            expiring_soon=is_expiring_soon(record.expires_at, now),
        )


class RecordListResponse(CamelModel):
    """Schema for the caller's record history."""
    records: List[RecordResponse] = Field(..., description="Most recently updated first")
    total: int


class AccessResponse(CamelModel):
    accessible: bool


class CleanupResponse(CamelModel):
    """Status payload of the expiry sweep endpoints."""
    success: bool
    message: Optional[str] = None
    deleted: int = 0
    failed: int = 0
