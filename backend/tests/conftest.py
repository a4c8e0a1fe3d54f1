import itertools
import os
import tempfile
import uuid
from pathlib import Path

# Point the app at a throwaway SQLite file before anything imports the engine.
_DB_DIR = Path(tempfile.mkdtemp(prefix="mentorgain-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["SUPERADMIN_EMAILS"] = "root@example.com"
os.environ["ENV"] = "dev"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from mentorgain import models
from mentorgain.database import engine, create_db_and_tables, drop_db_and_tables
from mentorgain.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test an empty schema."""
    drop_db_and_tables()
    create_db_and_tables()
    yield


@pytest.fixture
def make_user():
    """Factory registering a user, forcing its role, and logging it in.

    Returns a dict with `id`, `email` and ready-to-use auth `headers`.
    """
    counter = itertools.count()

    def _make(role: str = "user", name: str = None):
        n = next(counter)
        email = f"{role}{n}@example.com"
        r = client.post('/auth/register', json={'name': name or f'{role} {n}', 'email': email, 'password': 'secret123'})
        assert r.status_code == 201, r.text
        user_id = r.json()['id']
        if role != 'user':
            with Session(engine) as session:
                u = session.get(models.User, uuid.UUID(user_id))
                u.role = models.Role(role)
                session.add(u)
                session.commit()
        login = client.post('/auth/login', json={'email': email, 'password': 'secret123'})
        assert login.status_code == 200, login.text
        token = login.json()['access_token']
        return {'id': user_id, 'email': email, 'headers': {'Authorization': f'Bearer {token}'}}

    return _make


@pytest.fixture
def user(make_user):
    return make_user('user')


@pytest.fixture
def admin(make_user):
    return make_user('admin')


@pytest.fixture
def superadmin(make_user):
    return make_user('superadmin')


def program_payload(**overrides):
    payload = {
        'name': 'Web Development Bootcamp',
        'description': 'HTML, CSS and JavaScript from scratch.',
        'start_date': '2026-02-01T00:00:00',
        'end_date': '2026-04-30T00:00:00',
        'max_participants': 2,
        'form_fields': [
            {'title': 'Experience', 'field_type': 'number', 'is_required': True},
            {'title': 'Learning style', 'field_type': 'select', 'options': ['Video', 'Reading'], 'is_required': True},
            {'title': 'Stack', 'field_type': 'multi_select', 'options': ['HTML', 'CSS', 'JS']},
            {'title': 'Goals', 'field_type': 'text'},
            {'title': 'Resume', 'field_type': 'file'},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_program():
    """Create a program through the API as `owner` and return its JSON."""
    def _create(owner, **overrides):
        r = client.post('/programs', json=program_payload(**overrides), headers=owner['headers'])
        assert r.status_code == 201, r.text
        return r.json()

    return _create


def answers_for(program, **by_title):
    """Build an enrollment `responses` list from `{field title: value}` pairs."""
    slot = {
        'text': 'text_response',
        'number': 'number_response',
        'select': 'select_response',
        'multi_select': 'multi_select_response',
        'file': 'file_response',
    }
    fields = {f['title']: f for f in program['form_fields']}
    out = []
    for title, value in by_title.items():
        f = fields[title.replace('_', ' ')] if title not in fields else fields[title]
        out.append({'form_field_id': f['id'], slot[f['field_type']]: value})
    return out


@pytest.fixture
def enroll():
    """Apply to `program` as `applicant` with valid answers unless overridden."""
    def _enroll(applicant, program, responses=None):
        if responses is None:
            responses = answers_for(program, Experience=2, Learning_style='Video')
        return client.post(
            '/enrollments',
            json={'mentorship_program_id': program['id'], 'responses': responses},
            headers=applicant['headers'],
        )

    return _enroll
