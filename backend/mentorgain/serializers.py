"""Plain-dict response shapes.

Controllers return these dicts directly. They are built while the
request session is still open, so relationships can be walked lazily.
"""

from typing import Optional, Tuple

from . import models


def user_summary(u: models.User) -> dict:
    return {'id': u.id, 'name': u.name, 'email': u.email}


def user_out(u: models.User) -> dict:
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'role': u.role,
        'email_verified': u.email_verified,
        'created_at': u.created_at,
    }


def form_field_out(f: models.FormField) -> dict:
    return {
        'id': f.id,
        'mentorship_program_id': f.mentorship_program_id,
        'title': f.title,
        'description': f.description,
        'field_type': f.field_type,
        'options': f.options,
        'is_required': f.is_required,
        'order': f.order,
    }


def program_out(
    p: models.MentorshipProgram,
    counts: Optional[Tuple[int, int]] = None,
    with_fields: bool = False,
) -> dict:
    """Serialize a program; `counts` is `(enrollment_count, accepted_count)`."""
    out = {
        'id': p.id,
        'name': p.name,
        'description': p.description,
        'start_date': p.start_date,
        'end_date': p.end_date,
        'max_participants': p.max_participants,
        'status': p.status,
        'created_by': p.created_by,
        'creator': user_summary(p.creator) if p.creator else None,
        'created_at': p.created_at,
        'updated_at': p.updated_at,
    }
    if counts is not None:
        out['enrollment_count'], out['accepted_count'] = counts
    if with_fields:
        out['form_fields'] = [form_field_out(f) for f in p.form_fields]
    return out


def form_response_out(r: models.FormResponse) -> dict:
    return {
        'id': r.id,
        'form_field_id': r.form_field_id,
        'form_field': form_field_out(r.form_field) if r.form_field else None,
        'text_response': r.text_response,
        'number_response': r.number_response,
        'select_response': r.select_response,
        'multi_select_response': r.multi_select_response,
        'file_response': r.file_response,
    }


def enrollment_out(e: models.Enrollment, with_user: bool = True, with_program: bool = True) -> dict:
    """Serialize an enrollment with its responses ordered like the form."""
    responses = sorted(e.responses, key=lambda r: r.form_field.order if r.form_field else 0)
    out = {
        'id': e.id,
        'user_id': e.user_id,
        'mentorship_program_id': e.mentorship_program_id,
        'status': e.status,
        'created_at': e.created_at,
        'updated_at': e.updated_at,
        'responses': [form_response_out(r) for r in responses],
    }
    if with_user:
        out['user'] = user_summary(e.user) if e.user else None
    if with_program:
        p = e.program
        out['mentorship_program'] = {'id': p.id, 'name': p.name, 'status': p.status, 'created_by': p.created_by} if p else None
    return out
