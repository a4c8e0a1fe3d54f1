"""CLI script to reset the backend DB and fill it with demo data.
Usage: python scripts/seed.py [--keep]

Every seeded account uses the password `password123`.
"""
import sys
import argparse
import pathlib
from datetime import datetime, timezone
# Ensure `backend/` is on sys.path so `mentorgain` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from mentorgain import models
from mentorgain.database import engine, create_db_and_tables, drop_db_and_tables
from mentorgain.services import PWD_CTX

PASSWORD = 'password123'

USERS = [
    ('Super Admin', 'superadmin@mentorgain.com', models.Role.superadmin, True),
    ('Alice Johnson', 'alice@mentorgain.com', models.Role.admin, True),
    ('Bob Smith', 'bob@mentorgain.com', models.Role.admin, True),
    ('Charlie Brown', 'charlie@example.com', models.Role.user, True),
    ('Diana Prince', 'diana@example.com', models.Role.user, True),
    ('Edward Norton', 'edward@example.com', models.Role.user, False),
    ('Fiona Green', 'fiona@example.com', models.Role.user, True),
    ('George Wilson', 'george@example.com', models.Role.user, True),
]

# (name, description, start, end, max participants, status, creator email, fields)
PROGRAMS = [
    (
        'Web Development Bootcamp',
        'A comprehensive 12-week program covering HTML, CSS, JavaScript, React, and Node.js.',
        '2026-02-01', '2026-04-30', 20, models.ProgramStatus.open, 'alice@mentorgain.com',
        [
            ('Programming Experience', models.FieldType.number, None, True),
            ('Preferred Learning Style', models.FieldType.select,
             ['Video tutorials', 'Reading documentation', 'Hands-on projects', 'Pair programming'], True),
            ('Technologies Known', models.FieldType.multi_select,
             ['HTML', 'CSS', 'JavaScript', 'TypeScript', 'React', 'Vue', 'Angular', 'Node.js'], False),
            ('Goals', models.FieldType.text, None, True),
        ],
    ),
    (
        'Data Science Fundamentals',
        'Python, pandas, machine learning and data visualization for analysts looking to level up.',
        '2026-03-15', '2026-06-15', 15, models.ProgramStatus.open, 'alice@mentorgain.com',
        [
            ('Python Proficiency', models.FieldType.select, ['Beginner', 'Intermediate', 'Advanced'], True),
            ('Resume', models.FieldType.file, None, False),
        ],
    ),
    (
        'Cloud Architecture Mastery',
        'Design scalable, reliable cloud infrastructure on AWS, Azure and GCP.',
        '2026-01-10', '2026-03-10', 10, models.ProgramStatus.open, 'bob@mentorgain.com',
        [
            ('Cloud Platforms Used', models.FieldType.multi_select, ['AWS', 'Azure', 'GCP'], True),
        ],
    ),
    (
        'Leadership & Management',
        'Communication, team management, strategic thinking and conflict resolution.',
        '2025-10-01', '2025-12-31', 25, models.ProgramStatus.closed, 'bob@mentorgain.com',
        [],
    ),
]

# (user email, program name, status, {field title: value})
ENROLLMENTS = [
    ('charlie@example.com', 'Web Development Bootcamp', models.EnrollmentStatus.accepted,
     {'Programming Experience': 2, 'Preferred Learning Style': 'Hands-on projects',
      'Technologies Known': ['HTML', 'CSS'], 'Goals': 'Land a junior frontend role.'}),
    ('diana@example.com', 'Web Development Bootcamp', models.EnrollmentStatus.pending,
     {'Programming Experience': 0, 'Preferred Learning Style': 'Video tutorials', 'Goals': 'Build my own site.'}),
    ('fiona@example.com', 'Data Science Fundamentals', models.EnrollmentStatus.rejected,
     {'Python Proficiency': 'Beginner'}),
    ('george@example.com', 'Cloud Architecture Mastery', models.EnrollmentStatus.pending,
     {'Cloud Platforms Used': ['AWS']}),
]

SLOT = {
    models.FieldType.text: 'text_response',
    models.FieldType.number: 'number_response',
    models.FieldType.select: 'select_response',
    models.FieldType.multi_select: 'multi_select_response',
    models.FieldType.file: 'file_response',
}


def main(keep: bool = False):
    """Drop and recreate every table, then insert the demo data.

    With `keep` the existing tables are left alone and the demo rows are
    added on top (this fails if the demo emails already exist).
    """
    if not keep:
        print('Dropping existing tables')
        drop_db_and_tables()
    create_db_and_tables()
    password_hash = PWD_CTX.hash(PASSWORD)
    with Session(engine) as session:
        users = {}
        for name, email, role, verified in USERS:
            u = models.User(name=name, email=email, role=role, email_verified=verified, password_hash=password_hash)
            session.add(u)
            users[email] = u
        print(f'Created {len(users)} users')

        programs = {}
        fields = {}
        for name, description, start, end, max_p, status, creator, field_specs in PROGRAMS:
            p = models.MentorshipProgram(
                name=name,
                description=description,
                start_date=datetime.fromisoformat(start).replace(tzinfo=timezone.utc),
                end_date=datetime.fromisoformat(end).replace(tzinfo=timezone.utc),
                max_participants=max_p,
                status=status,
                created_by=users[creator].id,
            )
            session.add(p)
            programs[name] = p
            for order, (title, ftype, options, required) in enumerate(field_specs):
                f = models.FormField(mentorship_program_id=p.id, title=title, field_type=ftype,
                                     options=options, is_required=required, order=order)
                session.add(f)
                fields[(name, title)] = f
        print(f'Created {len(programs)} programs with {len(fields)} form fields')

        for email, program_name, status, answers in ENROLLMENTS:
            e = models.Enrollment(user_id=users[email].id, mentorship_program_id=programs[program_name].id, status=status)
            session.add(e)
            for title, value in answers.items():
                f = fields[(program_name, title)]
                session.add(models.FormResponse(enrollment_id=e.id, form_field_id=f.id, **{SLOT[f.field_type]: value}))
        print(f'Created {len(ENROLLMENTS)} enrollments')
        session.commit()
    print(f'Seed complete. Log in with any seeded email and password {PASSWORD!r}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--keep', action='store_true', help='Do not drop existing tables first')
    args = parser.parse_args()
    main(keep=args.keep)
