"""
Data models shared by the bulk fill pipeline.

- FieldDescriptor: one positioned form field of a template schema
- TemplateSchema: the persisted per-template field list
- Job: state of one bulk generation run
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import JobStateError


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    DAY = "day"
    TIME = "time"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    SIGNATURE = "signature"


class FieldDescriptor(BaseModel):
    """
    A form field overlay in document coordinates (origin bottom-left).

    `value` is the field's default (e.g. a pre-set signature image) until a
    data record overrides it. Attributes not declared here are preserved so a
    schema survives a load/save cycle unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    type: FieldType = FieldType.TEXT
    page: int = Field(default=1, ge=1)
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    required: bool = False
    font_size: Optional[float] = Field(default=None, alias="fontSize", gt=0)
    value: Any = None

    @field_validator("page", mode="before")
    @classmethod
    def _default_page(cls, value: Any) -> Any:
        return value or 1

    def clone(self) -> "FieldDescriptor":
        return self.model_copy(deep=True)

    def with_value(self, value: Any) -> "FieldDescriptor":
        filled = self.clone()
        filled.value = value
        return filled

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# A descriptor carrying a concrete value for one record.
FilledField = FieldDescriptor


class TemplateSchema(BaseModel):
    """Persisted `<template>.fields.json` record."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    template_name: str = Field(alias="templateName")
    user_id: Optional[str] = Field(default=None, alias="userId")
    saved_at: Optional[str] = Field(default=None, alias="savedAt")
    fields: List[FieldDescriptor] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude={"fields"})
        data["fields"] = [f.to_json() for f in self.fields]
        return data


class BulkOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    merge: bool = False
    filename_field: Optional[str] = Field(default=None, alias="filenameField")


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class OutputType(str, Enum):
    PDF = "pdf"
    ZIP = "zip"


class RowError(BaseModel):
    row: int  # 1-based position in the input
    message: str


class Job(BaseModel):
    """Bulk generation job. Status only moves forward out of `processing`."""

    id: str
    template_id: str = ""
    status: JobStatus = JobStatus.PROCESSING
    total: int = Field(default=0, ge=0)
    processed: int = 0
    errors: List[RowError] = Field(default_factory=list)
    output_file: Optional[str] = None
    output_type: Optional[OutputType] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not JobStatus.PROCESSING

    def advance(self) -> None:
        if self.processed >= self.total:
            raise JobStateError(f"Job {self.id} already processed all {self.total} records")
        self.processed += 1

    def add_row_error(self, row: int, message: str) -> None:
        self.errors.append(RowError(row=row, message=message))

    def mark_completed(self, output_file: str, output_type: OutputType) -> None:
        self._finish(JobStatus.COMPLETED)
        self.output_file = output_file
        self.output_type = output_type

    def mark_failed(self, error: str) -> None:
        self._finish(JobStatus.ERROR)
        self.error = error

    def _finish(self, status: JobStatus) -> None:
        if self.is_terminal:
            raise JobStateError(f"Job {self.id} is already {self.status.value}")
        self.status = status
        self.finished_at = datetime.now()

    def snapshot(self) -> Dict[str, Any]:
        """Read-only status view polled by clients."""
        return {
            "status": self.status.value,
            "total": self.total,
            "processed": self.processed,
            "errors": [e.model_dump() for e in self.errors],
            "outputType": self.output_type.value if self.output_type else None,
            "error": self.error,
        }
