"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
programs, form fields, enrollments). Repositories return SQLModel
objects and perform commits/refreshes where appropriate; access
control and validation belong to the services.
"""

import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, col, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: uuid.UUID) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def list(self, role: Optional[models.Role] = None) -> List[models.User]:
        """Return users, newest first, optionally restricted to one role."""
        stmt = select(models.User).order_by(col(models.User.created_at).desc())
        if role is not None:
            stmt = stmt.where(models.User.role == role)
        return self.session.exec(stmt).all()

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete(self, user: models.User) -> None:
        self.session.delete(user)
        self.session.commit()

    def count_by_role(self) -> Dict[models.Role, int]:
        stmt = select(models.User.role, func.count()).group_by(models.User.role)
        return {role: n for role, n in self.session.exec(stmt).all()}


class ProgramRepository:
    """CRUD operations for `MentorshipProgram` and its inline form fields."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, program: models.MentorshipProgram, fields: List[models.FormField]) -> models.MentorshipProgram:
        """Create a program together with its initial form fields in one commit."""
        self.session.add(program)
        for f in fields:
            f.mentorship_program_id = program.id
            self.session.add(f)
        self.session.commit()
        self.session.refresh(program)
        return program

    def get(self, program_id: uuid.UUID) -> Optional[models.MentorshipProgram]:
        """Fetch a program by id."""
        return self.session.get(models.MentorshipProgram, program_id)

    def list(
        self,
        status: Optional[models.ProgramStatus] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> List[models.MentorshipProgram]:
        """Return programs, newest first, filtered by status and/or creator."""
        stmt = select(models.MentorshipProgram).order_by(col(models.MentorshipProgram.created_at).desc())
        if status is not None:
            stmt = stmt.where(models.MentorshipProgram.status == status)
        if created_by is not None:
            stmt = stmt.where(models.MentorshipProgram.created_by == created_by)
        return self.session.exec(stmt).all()

    def ids_created_by(self, user_id: uuid.UUID) -> List[uuid.UUID]:
        stmt = select(models.MentorshipProgram.id).where(models.MentorshipProgram.created_by == user_id)
        return self.session.exec(stmt).all()

    def save(self, program: models.MentorshipProgram) -> models.MentorshipProgram:
        self.session.add(program)
        self.session.commit()
        self.session.refresh(program)
        return program

    def delete(self, program: models.MentorshipProgram) -> None:
        self.session.delete(program)
        self.session.commit()

    def count_by_status(self) -> Dict[models.ProgramStatus, int]:
        stmt = select(models.MentorshipProgram.status, func.count()).group_by(models.MentorshipProgram.status)
        return {status: n for status, n in self.session.exec(stmt).all()}


class FormFieldRepository:
    """Query helpers for `FormField` records."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, field_id: uuid.UUID) -> Optional[models.FormField]:
        return self.session.get(models.FormField, field_id)

    def list_for_program(self, program_id: uuid.UUID) -> List[models.FormField]:
        """List the fields of a program in display order."""
        stmt = (
            select(models.FormField)
            .where(models.FormField.mentorship_program_id == program_id)
            .order_by(col(models.FormField.order), col(models.FormField.created_at))
        )
        return self.session.exec(stmt).all()

    def max_order(self, program_id: uuid.UUID) -> Optional[int]:
        """Return the highest `order` used by the program, or `None` if it has no fields."""
        stmt = select(func.max(models.FormField.order)).where(models.FormField.mentorship_program_id == program_id)
        return self.session.exec(stmt).one()

    def create_many(self, fields: List[models.FormField]) -> List[models.FormField]:
        for f in fields:
            self.session.add(f)
        self.session.commit()
        for f in fields:
            self.session.refresh(f)
        return fields

    def save(self, field: models.FormField) -> models.FormField:
        self.session.add(field)
        self.session.commit()
        self.session.refresh(field)
        return field

    def delete(self, field: models.FormField) -> None:
        self.session.delete(field)
        self.session.commit()


class EnrollmentRepository:
    """Persist enrollments with their form responses and answer capacity queries."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, enrollment: models.Enrollment, responses: List[models.FormResponse]) -> models.Enrollment:
        """Store an `Enrollment` and its `FormResponse`s in a single transaction.

        The caller is responsible for rolling back if the commit raises.
        """
        self.session.add(enrollment)
        for r in responses:
            r.enrollment_id = enrollment.id
            self.session.add(r)
        self.session.commit()
        self.session.refresh(enrollment)
        return enrollment

    def get(self, enrollment_id: uuid.UUID) -> Optional[models.Enrollment]:
        return self.session.get(models.Enrollment, enrollment_id)

    def get_many(self, enrollment_ids: Iterable[uuid.UUID]) -> List[models.Enrollment]:
        stmt = select(models.Enrollment).where(col(models.Enrollment.id).in_(list(enrollment_ids)))
        return self.session.exec(stmt).all()

    def get_for_user_and_program(self, user_id: uuid.UUID, program_id: uuid.UUID) -> Optional[models.Enrollment]:
        stmt = select(models.Enrollment).where(
            models.Enrollment.user_id == user_id,
            models.Enrollment.mentorship_program_id == program_id,
        )
        return self.session.exec(stmt).first()

    def list(
        self,
        user_id: Optional[uuid.UUID] = None,
        program_ids: Optional[Iterable[uuid.UUID]] = None,
        status: Optional[models.EnrollmentStatus] = None,
    ) -> List[models.Enrollment]:
        """Return enrollments, newest first.

        `program_ids` restricts the result to those programs; an empty
        iterable therefore yields no rows.
        """
        stmt = select(models.Enrollment).order_by(col(models.Enrollment.created_at).desc())
        if user_id is not None:
            stmt = stmt.where(models.Enrollment.user_id == user_id)
        if program_ids is not None:
            stmt = stmt.where(col(models.Enrollment.mentorship_program_id).in_(list(program_ids)))
        if status is not None:
            stmt = stmt.where(models.Enrollment.status == status)
        return self.session.exec(stmt).all()

    def count_accepted(self, program_id: uuid.UUID, exclude: Iterable[uuid.UUID] = ()) -> int:
        """Count accepted enrollments of a program, ignoring the ids in `exclude`."""
        stmt = select(func.count()).select_from(models.Enrollment).where(
            models.Enrollment.mentorship_program_id == program_id,
            models.Enrollment.status == models.EnrollmentStatus.accepted,
        )
        exclude = list(exclude)
        if exclude:
            stmt = stmt.where(col(models.Enrollment.id).not_in(exclude))
        return self.session.exec(stmt).one()

    def counts_by_program(self, program_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Tuple[int, int]]:
        """Return `{program_id: (total, accepted)}` for the given programs."""
        program_ids = list(program_ids)
        if not program_ids:
            return {}
        stmt = (
            select(models.Enrollment.mentorship_program_id, models.Enrollment.status, func.count())
            .where(col(models.Enrollment.mentorship_program_id).in_(program_ids))
            .group_by(models.Enrollment.mentorship_program_id, models.Enrollment.status)
        )
        out: Dict[uuid.UUID, Tuple[int, int]] = {}
        for program_id, status, n in self.session.exec(stmt).all():
            total, accepted = out.get(program_id, (0, 0))
            out[program_id] = (total + n, accepted + (n if status == models.EnrollmentStatus.accepted else 0))
        return out

    def count_by_status(self) -> Dict[models.EnrollmentStatus, int]:
        stmt = select(models.Enrollment.status, func.count()).group_by(models.Enrollment.status)
        return {status: n for status, n in self.session.exec(stmt).all()}

    def save_many(self, enrollments: List[models.Enrollment]) -> List[models.Enrollment]:
        for e in enrollments:
            self.session.add(e)
        self.session.commit()
        for e in enrollments:
            self.session.refresh(e)
        return enrollments

    def delete(self, enrollment: models.Enrollment) -> None:
        self.session.delete(enrollment)
        self.session.commit()
