"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
form validation and access control. Services are intentionally thin:
they check who may do what, validate, execute domain logic and persist
aggregates via repositories. Failures are raised as `errors.ServiceError`
subclasses which the API layer turns into HTTP responses.

Ownership rule shared by every service: an admin may only manage the
programs they created (and everything hanging off them); a superadmin
may manage anything; a plain user only ever sees their own enrollments.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .schemas import FormFieldIn, FormFieldUpdate, ProgramCreate, ProgramUpdate, EnrollmentCreate
from .utils.form_validation import clean_options, clean_title, validate_responses

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("mentorgain.services")

Role = models.Role


def _log_event(event: str, **fields) -> None:
    logger.info("%s %s", event, json.dumps(fields, default=str, ensure_ascii=True))


def _is_superadmin(user: models.User) -> bool:
    return user.role == Role.superadmin


def _owns(user: models.User, program: models.MentorshipProgram) -> bool:
    return _is_superadmin(user) or program.created_by == user.id


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, name: str, email: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Emails listed in `SUPERADMIN_EMAILS` are registered as superadmins,
        which is how a fresh deployment gets its first superadmin.
        """
        email = email.strip().lower()
        if self.user_repo.get_by_email(email):
            raise ConflictError('email already registered')
        role = Role.superadmin if email in settings.SUPERADMIN_EMAILS else Role.user
        u = models.User(name=name.strip(), email=email, password_hash=PWD_CTX.hash(password), role=role)
        try:
            u = self.user_repo.create(u)
        except IntegrityError:
            self.session.rollback()
            raise ConflictError('email already registered')
        _log_event('user_registered', user_id=u.id, role=u.role.value)
        return u

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email.strip().lower())
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return issue_token(user)


def issue_token(user: models.User) -> str:
    """Sign a JWT for `user` valid for `JWT_EXPIRE_HOURS`."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"user_id": str(user.id), "role": user.role.value, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def build_form_fields(program_id: uuid.UUID, fields: Iterable[FormFieldIn], start_order: int = 0) -> List[models.FormField]:
    """Turn validated request fields into `FormField` rows.

    Fields without an explicit `order` are placed after `start_order` in
    submission order.
    """
    out = []
    for idx, f in enumerate(fields):
        try:
            title = clean_title(f.title)
            options = clean_options(f.field_type, f.options)
        except ValueError as e:
            raise ValidationError(str(e))
        out.append(models.FormField(
            mentorship_program_id=program_id,
            title=title,
            description=f.description,
            field_type=f.field_type,
            options=options,
            is_required=f.is_required,
            order=f.order if f.order is not None else start_order + idx,
        ))
    return out


class ProgramService:
    """Create, read, update and delete mentorship programs."""
    def __init__(self, session: Session):
        self.session = session
        self.program_repo = repositories.ProgramRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def _get_or_404(self, program_id: uuid.UUID) -> models.MentorshipProgram:
        program = self.program_repo.get(program_id)
        if not program:
            raise NotFoundError(f'Program with ID {program_id} not found')
        return program

    def counts_for(self, programs: List[models.MentorshipProgram]) -> Dict[uuid.UUID, Tuple[int, int]]:
        """Return `(enrollment_count, accepted_count)` per program id."""
        counts = self.enrollment_repo.counts_by_program(p.id for p in programs)
        return {p.id: counts.get(p.id, (0, 0)) for p in programs}

    def list_programs(self, user: models.User, mine: bool = False) -> List[models.MentorshipProgram]:
        """Users see open programs; admins and superadmins see everything."""
        created_by = user.id if mine else None
        if user.role == Role.user:
            return self.program_repo.list(status=models.ProgramStatus.open, created_by=created_by)
        return self.program_repo.list(created_by=created_by)

    def list_all(self, status: Optional[models.ProgramStatus] = None) -> List[models.MentorshipProgram]:
        return self.program_repo.list(status=status)

    def get_program(self, program_id: uuid.UUID, user: models.User) -> models.MentorshipProgram:
        program = self.program_repo.get(program_id)
        # closed programs are invisible to plain users
        if not program or (user.role == Role.user and program.status == models.ProgramStatus.closed):
            raise NotFoundError(f'Program with ID {program_id} not found')
        return program

    def create_program(self, user: models.User, data: ProgramCreate) -> models.MentorshipProgram:
        program = models.MentorshipProgram(
            name=data.name,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            max_participants=data.max_participants,
            created_by=user.id,
        )
        fields = build_form_fields(program.id, data.form_fields)
        program = self.program_repo.create(program, fields)
        _log_event('program_created', program_id=program.id, created_by=user.id, fields=len(fields))
        return program

    def update_program(self, program_id: uuid.UUID, user: models.User, data: ProgramUpdate) -> models.MentorshipProgram:
        program = self._get_or_404(program_id)
        if not _owns(user, program):
            raise PermissionDeniedError('You can only update programs you created')
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        # stored values come back naive from drivers that drop tzinfo
        start = models.as_utc(changes.get('start_date', program.start_date))
        end = models.as_utc(changes.get('end_date', program.end_date))
        if end < start:
            raise ValidationError('end_date must not be before start_date')
        if 'max_participants' in changes:
            accepted = self.enrollment_repo.count_accepted(program.id)
            if changes['max_participants'] < accepted:
                raise ValidationError(
                    f'max_participants cannot be lower than the {accepted} already accepted enrollments'
                )
        for key, value in changes.items():
            setattr(program, key, value)
        program = self.program_repo.save(program)
        _log_event('program_updated', program_id=program.id, by=user.id, fields=sorted(changes))
        return program

    def delete_program(self, program_id: uuid.UUID, user: models.User) -> None:
        program = self._get_or_404(program_id)
        if not _owns(user, program):
            raise PermissionDeniedError('You can only delete programs you created')
        self.program_repo.delete(program)
        _log_event('program_deleted', program_id=program_id, by=user.id)

    def close_program(self, program_id: uuid.UUID) -> models.MentorshipProgram:
        """Force-close a program regardless of who created it."""
        program = self._get_or_404(program_id)
        if program.status == models.ProgramStatus.closed:
            raise ValidationError('Program is already closed')
        program.status = models.ProgramStatus.closed
        program = self.program_repo.save(program)
        _log_event('program_closed', program_id=program.id)
        return program


class FormService:
    """Manage the dynamic application form attached to each program."""
    def __init__(self, session: Session):
        self.session = session
        self.program_repo = repositories.ProgramRepository(session)
        self.field_repo = repositories.FormFieldRepository(session)

    def get_fields(self, program_id: uuid.UUID, user: models.User) -> List[models.FormField]:
        program = self.program_repo.get(program_id)
        if not program:
            raise NotFoundError(f'Program with ID {program_id} not found')
        if user.role == Role.user and program.status == models.ProgramStatus.closed:
            raise PermissionDeniedError('This program is not available')
        return self.field_repo.list_for_program(program_id)

    def create_fields(self, program_id: uuid.UUID, user: models.User, fields: List[FormFieldIn]) -> List[models.FormField]:
        """Append fields to a program's form, after any existing ones."""
        program = self.program_repo.get(program_id)
        if not program:
            raise NotFoundError(f'Program with ID {program_id} not found')
        if not _owns(user, program):
            raise PermissionDeniedError('You can only add form fields to your own programs')
        current_max = self.field_repo.max_order(program_id)
        start_order = 0 if current_max is None else current_max + 1
        created = self.field_repo.create_many(build_form_fields(program_id, fields, start_order))
        _log_event('form_fields_created', program_id=program_id, count=len(created))
        return created

    def _get_owned_field(self, field_id: uuid.UUID, user: models.User, verb: str) -> models.FormField:
        field = self.field_repo.get(field_id)
        if not field:
            raise NotFoundError(f'Form field with ID {field_id} not found')
        if not _owns(user, field.program):
            raise PermissionDeniedError(f'You can only {verb} form fields in your own programs')
        return field

    def update_field(self, field_id: uuid.UUID, user: models.User, data: FormFieldUpdate) -> models.FormField:
        """Apply a partial update and re-validate the resulting definition.

        Switching a choice field to a non-choice type drops its options
        unless new ones are sent (which is then an error).
        """
        field = self._get_owned_field(field_id, user, 'update')
        changes = data.model_dump(exclude_unset=True)
        field_type = changes.get('field_type') or field.field_type
        if 'options' in changes:
            options = changes['options']
        elif field_type in (models.FieldType.select, models.FieldType.multi_select):
            options = field.options
        else:
            options = None
        try:
            field.title = clean_title(changes['title']) if changes.get('title') is not None else field.title
            field.options = clean_options(field_type, options)
        except ValueError as e:
            raise ValidationError(str(e))
        field.field_type = field_type
        if 'description' in changes:
            field.description = changes['description']
        if changes.get('is_required') is not None:
            field.is_required = changes['is_required']
        if changes.get('order') is not None:
            field.order = changes['order']
        field = self.field_repo.save(field)
        _log_event('form_field_updated', field_id=field.id, by=user.id)
        return field

    def delete_field(self, field_id: uuid.UUID, user: models.User) -> None:
        field = self._get_owned_field(field_id, user, 'delete')
        self.field_repo.delete(field)
        _log_event('form_field_deleted', field_id=field_id, by=user.id)


class EnrollmentService:
    """Apply to programs, withdraw, and review applications."""
    def __init__(self, session: Session):
        self.session = session
        self.program_repo = repositories.ProgramRepository(session)
        self.field_repo = repositories.FormFieldRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def _get_or_404(self, enrollment_id: uuid.UUID) -> models.Enrollment:
        enrollment = self.enrollment_repo.get(enrollment_id)
        if not enrollment:
            raise NotFoundError(f'Enrollment with ID {enrollment_id} not found')
        return enrollment

    def list_enrollments(
        self,
        user: models.User,
        program_id: Optional[uuid.UUID] = None,
        status: Optional[models.EnrollmentStatus] = None,
    ) -> List[models.Enrollment]:
        """List enrollments visible to `user`.

        Users get their own; admins get those of the programs they
        created; superadmins get everything.
        """
        if user.role == Role.user:
            program_ids = [program_id] if program_id else None
            return self.enrollment_repo.list(user_id=user.id, program_ids=program_ids, status=status)
        if user.role == Role.admin:
            own = self.program_repo.ids_created_by(user.id)
            if program_id:
                if program_id not in own:
                    raise PermissionDeniedError('You can only view enrollments for your own programs')
                own = [program_id]
            return self.enrollment_repo.list(program_ids=own, status=status)
        return self.enrollment_repo.list(program_ids=[program_id] if program_id else None, status=status)

    def list_for_program(self, program_id: uuid.UUID, user: models.User) -> List[models.Enrollment]:
        program = self.program_repo.get(program_id)
        if not program:
            raise NotFoundError(f'Program with ID {program_id} not found')
        if not _owns(user, program):
            raise PermissionDeniedError('You can only view enrollments for your own programs')
        return self.enrollment_repo.list(program_ids=[program_id])

    def get_enrollment(self, enrollment_id: uuid.UUID, user: models.User) -> models.Enrollment:
        enrollment = self._get_or_404(enrollment_id)
        if user.role == Role.user and enrollment.user_id != user.id:
            raise PermissionDeniedError('You can only view your own enrollments')
        if user.role == Role.admin and not (_owns(user, enrollment.program) or enrollment.user_id == user.id):
            raise PermissionDeniedError('You can only view enrollments for your own programs')
        return enrollment

    def enroll(self, user: models.User, data: EnrollmentCreate) -> models.Enrollment:
        """Create an enrollment for `user` together with their form responses.

        Checks run in order: program exists and is open, no existing
        enrollment, capacity not yet reached, responses valid and every
        required field answered.
        """
        program = self.program_repo.get(data.mentorship_program_id)
        if not program:
            raise NotFoundError(f'Program with ID {data.mentorship_program_id} not found')
        if program.status != models.ProgramStatus.open:
            raise ValidationError('This program is not accepting enrollments')
        if self.enrollment_repo.get_for_user_and_program(user.id, program.id):
            raise ConflictError('You are already enrolled in this program')
        if self.enrollment_repo.count_accepted(program.id) >= program.max_participants:
            raise ValidationError('This program is full')

        fields = self.field_repo.list_for_program(program.id)
        try:
            cleaned = validate_responses(fields, [r.model_dump() for r in data.responses])
        except ValueError as e:
            raise ValidationError(str(e))

        enrollment = models.Enrollment(user_id=user.id, mentorship_program_id=program.id)
        responses = [models.FormResponse(enrollment_id=enrollment.id, **c) for c in cleaned]
        try:
            enrollment = self.enrollment_repo.create(enrollment, responses)
        except IntegrityError:
            # a concurrent request won the unique (user, program) index
            self.session.rollback()
            raise ConflictError('You are already enrolled in this program')
        _log_event('enrollment_created', enrollment_id=enrollment.id, user_id=user.id,
                   program_id=program.id, responses=len(responses))
        return enrollment

    def withdraw(self, enrollment_id: uuid.UUID, user: models.User) -> None:
        enrollment = self._get_or_404(enrollment_id)
        if user.role == Role.user and enrollment.user_id != user.id:
            raise PermissionDeniedError('You can only withdraw your own enrollment')
        if user.role == Role.admin and not (_owns(user, enrollment.program) or enrollment.user_id == user.id):
            raise PermissionDeniedError('You can only withdraw enrollments from your own programs')
        self.enrollment_repo.delete(enrollment)
        _log_event('enrollment_withdrawn', enrollment_id=enrollment_id, by=user.id)

    def _check_capacity(self, program: models.MentorshipProgram, incoming: List[uuid.UUID]) -> None:
        """Raise unless `program` can hold the accepted enrollments plus `incoming`."""
        accepted = self.enrollment_repo.count_accepted(program.id, exclude=incoming)
        if accepted + len(incoming) > program.max_participants:
            raise ValidationError(f'Cannot accept: program {program.name} has reached maximum participants')

    def set_status(self, enrollment_id: uuid.UUID, status: models.EnrollmentStatus, user: models.User) -> models.Enrollment:
        enrollment = self._get_or_404(enrollment_id)
        if not _owns(user, enrollment.program):
            raise PermissionDeniedError('You can only accept/reject enrollments for your own programs')
        if status == models.EnrollmentStatus.accepted:
            self._check_capacity(enrollment.program, [enrollment.id])
        previous = enrollment.status
        enrollment.status = status
        self.enrollment_repo.save_many([enrollment])
        _log_event('enrollment_status_changed', enrollment_id=enrollment.id, by=user.id,
                   previous=previous.value, status=status.value)
        return enrollment

    def bulk_set_status(self, enrollment_ids: List[uuid.UUID], status: models.EnrollmentStatus) -> List[models.Enrollment]:
        """Set `status` on every listed enrollment, or on none of them."""
        wanted = list(dict.fromkeys(enrollment_ids))
        enrollments = self.enrollment_repo.get_many(wanted)
        found = {e.id for e in enrollments}
        missing = [str(i) for i in wanted if i not in found]
        if missing:
            raise NotFoundError(f'Enrollments not found: {", ".join(missing)}')
        if status == models.EnrollmentStatus.accepted:
            by_program: Dict[uuid.UUID, List[uuid.UUID]] = {}
            for e in enrollments:
                by_program.setdefault(e.mentorship_program_id, []).append(e.id)
            for program_id, ids in by_program.items():
                self._check_capacity(self.program_repo.get(program_id), ids)
        for e in enrollments:
            e.status = status
        self.enrollment_repo.save_many(enrollments)
        _log_event('enrollment_status_bulk_changed', count=len(enrollments), status=status.value)
        return enrollments


class UserService:
    """Profile lookups with the admin visibility rule applied."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)
        self.program_repo = repositories.ProgramRepository(session)

    def _get_or_404(self, user_id: uuid.UUID) -> models.User:
        found = self.user_repo.get(user_id)
        if not found:
            raise NotFoundError(f'User with ID {user_id} not found')
        return found

    def get_user(self, user_id: uuid.UUID, viewer: models.User) -> models.User:
        """Admins may only look at users who applied to one of their programs."""
        found = self._get_or_404(user_id)
        if viewer.role == Role.admin and found.id != viewer.id:
            if not any(e.program.created_by == viewer.id for e in found.enrollments):
                raise PermissionDeniedError('You can only view users enrolled in your programs')
        return found

    def list_user_enrollments(self, user_id: uuid.UUID, viewer: models.User) -> List[models.Enrollment]:
        self._get_or_404(user_id)
        if viewer.role == Role.admin and user_id != viewer.id:
            return self.enrollment_repo.list(user_id=user_id, program_ids=self.program_repo.ids_created_by(viewer.id))
        return self.enrollment_repo.list(user_id=user_id)


class SuperadminService:
    """Platform-wide administration reserved to superadmins."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.program_repo = repositories.ProgramRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def stats(self) -> dict:
        users = self.user_repo.count_by_role()
        programs = self.program_repo.count_by_status()
        enrollments = self.enrollment_repo.count_by_status()
        return {
            'users': {
                'total': sum(users.values()),
                'admins': users.get(Role.admin, 0),
                'superadmins': users.get(Role.superadmin, 0),
            },
            'programs': {
                'total': sum(programs.values()),
                'open': programs.get(models.ProgramStatus.open, 0),
                'closed': programs.get(models.ProgramStatus.closed, 0),
            },
            'enrollments': {
                'total': sum(enrollments.values()),
                **{s.value: enrollments.get(s, 0) for s in models.EnrollmentStatus},
            },
        }

    def list_users(self, role: Optional[models.Role] = None) -> List[models.User]:
        return self.user_repo.list(role=role)

    def list_admins(self) -> List[models.User]:
        return self.user_repo.list(role=Role.admin)

    def get_user(self, user_id: uuid.UUID) -> models.User:
        found = self.user_repo.get(user_id)
        if not found:
            raise NotFoundError('User not found')
        return found

    def update_role(self, user_id: uuid.UUID, role: models.Role, actor: models.User) -> models.User:
        target = self.get_user(user_id)
        if target.id == actor.id and role != Role.superadmin:
            raise ValidationError('You cannot remove your own superadmin role')
        previous = target.role
        target.role = role
        target = self.user_repo.save(target)
        _log_event('user_role_changed', user_id=target.id, by=actor.id, previous=previous.value, role=role.value)
        return target

    def delete_user(self, user_id: uuid.UUID, actor: models.User) -> None:
        target = self.get_user(user_id)
        if target.role == Role.superadmin:
            raise ValidationError('Cannot delete a superadmin')
        self.user_repo.delete(target)
        _log_event('user_deleted', user_id=user_id, by=actor.id)
