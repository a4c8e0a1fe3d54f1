"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. Field-definition rules that depend on
the field type live in `utils.form_validation` so that updates, which
only carry part of a definition, can be checked against stored values.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator

from .models import EnrollmentStatus, FieldType, ProgramStatus, Role, as_utc


# Integer columns are 64-bit signed in SQLite and Postgres BIGINT
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class RegisterIn(BaseModel):
    """Payload for user registration."""
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=6, max_length=200)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("invalid email address")
        return v


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class FormFieldIn(BaseModel):
    """One field definition, used inline on program creation and for batch creates."""
    title: str = Field(min_length=1)
    description: Optional[str] = None
    field_type: FieldType
    options: Optional[List[str]] = None
    is_required: bool = False
    order: Optional[int] = Field(default=None, ge=0, le=INT64_MAX)


class FormFieldsIn(BaseModel):
    fields: List[FormFieldIn] = Field(min_length=1)


class FormFieldUpdate(BaseModel):
    """Partial update of a field; unset attributes are left unchanged."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    field_type: Optional[FieldType] = None
    options: Optional[List[str]] = None
    is_required: Optional[bool] = None
    order: Optional[int] = Field(default=None, ge=0, le=INT64_MAX)


class ProgramCreate(BaseModel):
    """Request body for creating a program with optional inline form fields."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    start_date: datetime
    end_date: datetime
    max_participants: int = Field(ge=1, le=INT64_MAX)
    form_fields: List[FormFieldIn] = []

    @field_validator("start_date", "end_date")
    @classmethod
    def utc_dates(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProgramUpdate(BaseModel):
    """Partial update of a program; unset attributes are left unchanged."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, ge=1, le=INT64_MAX)
    status: Optional[ProgramStatus] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def utc_dates(cls, v):
        return as_utc(v)


class FormResponseIn(BaseModel):
    """A single answer; only the slot matching the field type should be set."""
    form_field_id: uuid.UUID
    text_response: Optional[str] = None
    # strict: JSON booleans and numeric strings are not numbers
    number_response: Optional[StrictInt] = Field(default=None, ge=INT64_MIN, le=INT64_MAX)
    select_response: Optional[str] = None
    multi_select_response: Optional[List[str]] = None
    file_response: Optional[str] = Field(default=None, max_length=2048)


class EnrollmentCreate(BaseModel):
    """Request body for applying to a program."""
    mentorship_program_id: uuid.UUID
    responses: List[FormResponseIn] = []


class UserRoleUpdate(BaseModel):
    role: Role


class BulkEnrollmentStatusUpdate(BaseModel):
    enrollment_ids: List[uuid.UUID] = Field(min_length=1)
    status: EnrollmentStatus
