"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Parent-side relationships cascade deletes so that removing a user or a
program also removes everything hanging off it.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return `value` as an aware UTC datetime; naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_CASCADE = {"cascade": "all, delete-orphan"}


class Role(str, Enum):
    user = "user"
    admin = "admin"
    superadmin = "superadmin"


class ProgramStatus(str, Enum):
    open = "open"
    closed = "closed"


class FieldType(str, Enum):
    text = "text"
    number = "number"
    select = "select"
    multi_select = "multi_select"
    file = "file"


class EnrollmentStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: only a superadmin may change it after registration
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: Role = Field(default=Role.user)
    email_verified: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})
    programs: List["MentorshipProgram"] = Relationship(back_populates="creator", sa_relationship_kwargs=_CASCADE)
    enrollments: List["Enrollment"] = Relationship(back_populates="user", sa_relationship_kwargs=_CASCADE)


class MentorshipProgram(SQLModel, table=True):
    """A mentorship program owned by the admin who created it."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    description: str
    start_date: datetime
    end_date: datetime
    max_participants: int
    status: ProgramStatus = Field(default=ProgramStatus.open, index=True)
    created_by: uuid.UUID = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})
    creator: Optional[User] = Relationship(back_populates="programs")
    form_fields: List["FormField"] = Relationship(
        back_populates="program",
        sa_relationship_kwargs={**_CASCADE, "order_by": "FormField.order"},
    )
    enrollments: List["Enrollment"] = Relationship(back_populates="program", sa_relationship_kwargs=_CASCADE)


class FormField(SQLModel, table=True):
    """One question on a program's application form.

    `options` is only populated for `select` and `multi_select` fields.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    mentorship_program_id: uuid.UUID = Field(foreign_key="mentorshipprogram.id", ondelete="CASCADE", index=True)
    title: str
    description: Optional[str] = None
    field_type: FieldType
    options: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    is_required: bool = False
    order: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})
    program: Optional[MentorshipProgram] = Relationship(back_populates="form_fields")
    responses: List["FormResponse"] = Relationship(back_populates="form_field", sa_relationship_kwargs=_CASCADE)


class Enrollment(SQLModel, table=True):
    """A user's application to a program, unique per (user, program)."""
    __table_args__ = (
        UniqueConstraint("user_id", "mentorship_program_id", name="enrollment_user_program_unique"),
    )
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", ondelete="CASCADE", index=True)
    mentorship_program_id: uuid.UUID = Field(foreign_key="mentorshipprogram.id", ondelete="CASCADE", index=True)
    status: EnrollmentStatus = Field(default=EnrollmentStatus.pending, index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})
    user: Optional[User] = Relationship(back_populates="enrollments")
    program: Optional[MentorshipProgram] = Relationship(back_populates="enrollments")
    responses: List["FormResponse"] = Relationship(back_populates="enrollment", sa_relationship_kwargs=_CASCADE)


class FormResponse(SQLModel, table=True):
    """The answer to one `FormField` inside an `Enrollment`.

    Exactly one of the typed slots is populated, chosen by the field type.
    """
    __table_args__ = (
        UniqueConstraint("enrollment_id", "form_field_id", name="form_response_enrollment_field_unique"),
    )
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    enrollment_id: uuid.UUID = Field(foreign_key="enrollment.id", ondelete="CASCADE", index=True)
    form_field_id: uuid.UUID = Field(foreign_key="formfield.id", ondelete="CASCADE")
    text_response: Optional[str] = None
    number_response: Optional[int] = None
    select_response: Optional[str] = None
    multi_select_response: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    file_response: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})
    enrollment: Optional[Enrollment] = Relationship(back_populates="responses")
    form_field: Optional[FormField] = Relationship(back_populates="responses")
