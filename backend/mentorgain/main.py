"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the MentorGain backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON built by `serializers`. Service errors are
mapped to HTTP status codes by a single exception handler.

Endpoints implemented:
- POST /auth/register, POST /auth/login
- /programs: list, get, create, update, delete
- /forms: list a program's fields, batch create, update, delete
- /enrollments: list, list per program, get, apply, withdraw, accept, reject
- /users: me, my enrollments, user lookup, user enrollments
- /superadmin: stats, users, roles, admins, programs, enrollments
- GET /health
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from .database import create_db_and_tables, get_session
from . import services, models, serializers
from .auth import get_current_user, require_staff, require_superadmin
from .config import settings
from .errors import ServiceError
from .schemas import (
    BulkEnrollmentStatusUpdate,
    EnrollmentCreate,
    FormFieldsIn,
    FormFieldUpdate,
    LoginIn,
    ProgramCreate,
    ProgramUpdate,
    RegisterIn,
    TokenOut,
    UserRoleUpdate,
)

app = FastAPI(title="MentorGain API")
logger = logging.getLogger("mentorgain.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
elif settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# --- auth -----------------------------------------------------------------

@app.post('/auth/register', status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new account with role `user` (or superadmin when bootstrapped)."""
    user = services.AuthService(db).register(payload.name, payload.email, payload.password)
    return serializers.user_out(user)


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id` and `role` and is signed
    using the configured JWT secret.
    """
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail="invalid credentials")
    return TokenOut(access_token=token)


# --- programs -------------------------------------------------------------

@app.get('/programs')
def list_programs(mine: bool = False, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List programs visible to the caller, with enrollment counts.

    Plain users only see open programs. `mine=true` keeps the programs
    the caller created.
    """
    svc = services.ProgramService(db)
    programs = svc.list_programs(user, mine=mine)
    counts = svc.counts_for(programs)
    return [serializers.program_out(p, counts[p.id]) for p in programs]


@app.get('/programs/{program_id}')
def get_program(program_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.ProgramService(db)
    program = svc.get_program(program_id, user)
    return serializers.program_out(program, svc.counts_for([program])[program.id], with_fields=True)


@app.post('/programs', status_code=201)
def create_program(payload: ProgramCreate, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    """Create a program owned by the caller, optionally with its form fields."""
    program = services.ProgramService(db).create_program(user, payload)
    return serializers.program_out(program, (0, 0), with_fields=True)


@app.put('/programs/{program_id}')
def update_program(program_id: uuid.UUID, payload: ProgramUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    program = services.ProgramService(db).update_program(program_id, user, payload)
    return serializers.program_out(program)


@app.delete('/programs/{program_id}')
def delete_program(program_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    services.ProgramService(db).delete_program(program_id, user)
    return {'message': 'Program deleted successfully'}


# --- forms ----------------------------------------------------------------

@app.get('/forms/program/{program_id}')
def list_form_fields(program_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return the program's form fields in display order."""
    fields = services.FormService(db).get_fields(program_id, user)
    return [serializers.form_field_out(f) for f in fields]


@app.post('/forms/program/{program_id}', status_code=201)
def create_form_fields(program_id: uuid.UUID, payload: FormFieldsIn, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    """Append fields to a program's form."""
    fields = services.FormService(db).create_fields(program_id, user, payload.fields)
    return [serializers.form_field_out(f) for f in fields]


@app.put('/forms/{field_id}')
def update_form_field(field_id: uuid.UUID, payload: FormFieldUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    field = services.FormService(db).update_field(field_id, user, payload)
    return serializers.form_field_out(field)


@app.delete('/forms/{field_id}')
def delete_form_field(field_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    services.FormService(db).delete_field(field_id, user)
    return {'message': 'Form field deleted successfully'}


# --- enrollments ----------------------------------------------------------

@app.get('/enrollments')
def list_enrollments(
    program_id: Optional[uuid.UUID] = None,
    status: Optional[models.EnrollmentStatus] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """List enrollments visible to the caller, optionally for one program."""
    enrollments = services.EnrollmentService(db).list_enrollments(user, program_id=program_id, status=status)
    return [serializers.enrollment_out(e) for e in enrollments]


@app.get('/enrollments/program/{program_id}')
def list_program_enrollments(program_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    enrollments = services.EnrollmentService(db).list_for_program(program_id, user)
    return [serializers.enrollment_out(e, with_program=False) for e in enrollments]


@app.get('/enrollments/{enrollment_id}')
def get_enrollment(enrollment_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    enrollment = services.EnrollmentService(db).get_enrollment(enrollment_id, user)
    return serializers.enrollment_out(enrollment)


@app.post('/enrollments', status_code=201)
def create_enrollment(payload: EnrollmentCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Apply to a program on behalf of the caller.

    The body carries one response per answered form field; required
    fields must all be answered.
    """
    enrollment = services.EnrollmentService(db).enroll(user, payload)
    return serializers.enrollment_out(enrollment)


@app.delete('/enrollments/{enrollment_id}')
def withdraw_enrollment(enrollment_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.EnrollmentService(db).withdraw(enrollment_id, user)
    return {'message': 'Enrollment withdrawn successfully'}


@app.put('/enrollments/{enrollment_id}/accept')
def accept_enrollment(enrollment_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    enrollment = services.EnrollmentService(db).set_status(enrollment_id, models.EnrollmentStatus.accepted, user)
    return serializers.enrollment_out(enrollment)


@app.put('/enrollments/{enrollment_id}/reject')
def reject_enrollment(enrollment_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    enrollment = services.EnrollmentService(db).set_status(enrollment_id, models.EnrollmentStatus.rejected, user)
    return serializers.enrollment_out(enrollment)


# --- users ----------------------------------------------------------------

@app.get('/users/me')
def get_me(user: models.User = Depends(get_current_user)):
    """Return the caller's profile with their enrollments and answers."""
    out = serializers.user_out(user)
    out['enrollments'] = [serializers.enrollment_out(e, with_user=False) for e in user.enrollments]
    return out


@app.get('/users/me/enrollments')
def get_my_enrollments(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    enrollments = services.UserService(db).list_user_enrollments(user.id, user)
    return [serializers.enrollment_out(e, with_user=False) for e in enrollments]


@app.get('/users/{user_id}')
def get_user(user_id: uuid.UUID, db: Session = Depends(get_session), viewer: models.User = Depends(require_staff)):
    found = services.UserService(db).get_user(user_id, viewer)
    out = serializers.user_out(found)
    visible = [e for e in found.enrollments if viewer.role == models.Role.superadmin or e.program.created_by == viewer.id]
    out['enrollments'] = [serializers.enrollment_out(e, with_user=False) for e in visible]
    return out


@app.get('/users/{user_id}/enrollments')
def get_user_enrollments(user_id: uuid.UUID, db: Session = Depends(get_session), viewer: models.User = Depends(require_staff)):
    enrollments = services.UserService(db).list_user_enrollments(user_id, viewer)
    return [serializers.enrollment_out(e, with_user=False) for e in enrollments]


# --- superadmin -----------------------------------------------------------

@app.get('/superadmin/stats')
def superadmin_stats(db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    """Platform-wide counts of users, programs and enrollments."""
    return services.SuperadminService(db).stats()


@app.get('/superadmin/users')
def superadmin_list_users(role: Optional[models.Role] = None, db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    return [serializers.user_out(u) for u in services.SuperadminService(db).list_users(role)]


@app.get('/superadmin/users/{user_id}')
def superadmin_get_user(user_id: uuid.UUID, db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    found = services.SuperadminService(db).get_user(user_id)
    out = serializers.user_out(found)
    out['enrollments'] = [
        {'id': e.id, 'status': e.status, 'created_at': e.created_at,
         'mentorship_program': {'id': e.program.id, 'name': e.program.name, 'status': e.program.status}}
        for e in found.enrollments
    ]
    out['created_programs'] = [
        {'id': p.id, 'name': p.name, 'status': p.status, 'created_at': p.created_at} for p in found.programs
    ]
    return out


@app.patch('/superadmin/users/{user_id}/role')
def superadmin_update_role(user_id: uuid.UUID, payload: UserRoleUpdate, db: Session = Depends(get_session), actor: models.User = Depends(require_superadmin)):
    return serializers.user_out(services.SuperadminService(db).update_role(user_id, payload.role, actor))


@app.delete('/superadmin/users/{user_id}')
def superadmin_delete_user(user_id: uuid.UUID, db: Session = Depends(get_session), actor: models.User = Depends(require_superadmin)):
    services.SuperadminService(db).delete_user(user_id, actor)
    return {'message': 'User deleted successfully'}


@app.get('/superadmin/admins')
def superadmin_list_admins(db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    out = []
    for admin in services.SuperadminService(db).list_admins():
        item = serializers.user_out(admin)
        item['created_programs'] = [{'id': p.id, 'name': p.name, 'status': p.status} for p in admin.programs]
        out.append(item)
    return out


@app.get('/superadmin/programs')
def superadmin_list_programs(status: Optional[models.ProgramStatus] = None, db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    svc = services.ProgramService(db)
    programs = svc.list_all(status)
    counts = svc.counts_for(programs)
    return [serializers.program_out(p, counts[p.id]) for p in programs]


@app.patch('/superadmin/programs/{program_id}/close')
def superadmin_close_program(program_id: uuid.UUID, db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    return serializers.program_out(services.ProgramService(db).close_program(program_id))


@app.delete('/superadmin/programs/{program_id}')
def superadmin_delete_program(program_id: uuid.UUID, db: Session = Depends(get_session), actor: models.User = Depends(require_superadmin)):
    services.ProgramService(db).delete_program(program_id, actor)
    return {'message': 'Program deleted successfully'}


@app.get('/superadmin/enrollments')
def superadmin_list_enrollments(
    status: Optional[models.EnrollmentStatus] = None,
    program_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_session),
    actor: models.User = Depends(require_superadmin),
):
    enrollments = services.EnrollmentService(db).list_enrollments(actor, program_id=program_id, status=status)
    return [serializers.enrollment_out(e) for e in enrollments]


@app.patch('/superadmin/enrollments/status')
def superadmin_bulk_status(payload: BulkEnrollmentStatusUpdate, db: Session = Depends(get_session), _: models.User = Depends(require_superadmin)):
    """Set one status on many enrollments at once; all or nothing."""
    enrollments = services.EnrollmentService(db).bulk_set_status(payload.enrollment_ids, payload.status)
    return {'updated': len(enrollments), 'status': payload.status, 'enrollment_ids': [e.id for e in enrollments]}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
