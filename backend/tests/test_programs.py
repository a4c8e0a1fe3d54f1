from fastapi.testclient import TestClient

from mentorgain.main import app
from conftest import program_payload

client = TestClient(app)


def test_create_program_with_inline_fields(admin, create_program):
    program = create_program(admin)
    assert program['created_by'] == admin['id']
    assert program['status'] == 'open'
    assert program['enrollment_count'] == 0
    titles = [f['title'] for f in program['form_fields']]
    assert titles == ['Experience', 'Learning style', 'Stack', 'Goals', 'Resume']
    assert [f['order'] for f in program['form_fields']] == [0, 1, 2, 3, 4]
    assert program['form_fields'][1]['options'] == ['Video', 'Reading']


def test_create_program_validation(admin):
    r = client.post('/programs', json=program_payload(end_date='2026-01-01T00:00:00'), headers=admin['headers'])
    assert r.status_code == 422
    r = client.post('/programs', json=program_payload(max_participants=0), headers=admin['headers'])
    assert r.status_code == 422
    bad_field = [{'title': 'Pick', 'field_type': 'select', 'options': []}]
    r = client.post('/programs', json=program_payload(form_fields=bad_field), headers=admin['headers'])
    assert r.status_code == 400
    assert 'at least one option' in r.json()['detail']


def test_users_only_see_open_programs(admin, user, create_program):
    open_p = create_program(admin, name='Open one')
    closed_p = create_program(admin, name='Closed one')
    r = client.put(f"/programs/{closed_p['id']}", json={'status': 'closed'}, headers=admin['headers'])
    assert r.status_code == 200
    assert r.json()['status'] == 'closed'

    names = [p['name'] for p in client.get('/programs', headers=user['headers']).json()]
    assert names == ['Open one']
    assert client.get(f"/programs/{closed_p['id']}", headers=user['headers']).status_code == 404
    assert client.get(f"/programs/{open_p['id']}", headers=user['headers']).status_code == 200

    admin_names = {p['name'] for p in client.get('/programs', headers=admin['headers']).json()}
    assert admin_names == {'Open one', 'Closed one'}


def test_mine_filter(make_user, create_program):
    alice = make_user('admin')
    bob = make_user('admin')
    create_program(alice, name='Alice program')
    create_program(bob, name='Bob program')
    mine = client.get('/programs', params={'mine': True}, headers=alice['headers']).json()
    assert [p['name'] for p in mine] == ['Alice program']
    assert mine[0]['creator']['email'] == alice['email']


def test_admin_cannot_touch_other_admins_program(make_user, superadmin, create_program):
    alice = make_user('admin')
    bob = make_user('admin')
    program = create_program(alice)
    r = client.put(f"/programs/{program['id']}", json={'name': 'Hijacked'}, headers=bob['headers'])
    assert r.status_code == 403
    r = client.delete(f"/programs/{program['id']}", headers=bob['headers'])
    assert r.status_code == 403
    r = client.put(f"/programs/{program['id']}", json={'name': 'Renamed'}, headers=superadmin['headers'])
    assert r.status_code == 200
    assert r.json()['name'] == 'Renamed'


def test_update_rejects_inverted_dates(admin, create_program):
    program = create_program(admin)
    r = client.put(f"/programs/{program['id']}", json={'end_date': '2025-01-01T00:00:00'}, headers=admin['headers'])
    assert r.status_code == 400


def test_cannot_shrink_capacity_below_accepted(admin, make_user, create_program, enroll):
    program = create_program(admin, max_participants=3)
    for _ in range(2):
        applicant = make_user('user')
        enrollment = enroll(applicant, program).json()
        assert client.put(f"/enrollments/{enrollment['id']}/accept", headers=admin['headers']).status_code == 200
    r = client.put(f"/programs/{program['id']}", json={'max_participants': 1}, headers=admin['headers'])
    assert r.status_code == 400
    r = client.put(f"/programs/{program['id']}", json={'max_participants': 2}, headers=admin['headers'])
    assert r.status_code == 200
    detail = client.get(f"/programs/{program['id']}", headers=admin['headers']).json()
    assert detail['accepted_count'] == 2
    assert detail['enrollment_count'] == 2


def test_delete_program_cascades(admin, user, create_program, enroll):
    program = create_program(admin)
    enrollment = enroll(user, program).json()
    r = client.delete(f"/programs/{program['id']}", headers=admin['headers'])
    assert r.status_code == 200
    assert client.get(f"/programs/{program['id']}", headers=admin['headers']).status_code == 404
    assert client.get(f"/enrollments/{enrollment['id']}", headers=user['headers']).status_code == 404
    assert client.get('/users/me/enrollments', headers=user['headers']).json() == []


def test_integer_limits_rejected(admin, create_program):
    r = client.post('/programs', json=program_payload(max_participants=10 ** 20), headers=admin['headers'])
    assert r.status_code == 422
    program = create_program(admin)
    r = client.put(f"/programs/{program['id']}", json={'max_participants': 10 ** 20}, headers=admin['headers'])
    assert r.status_code == 422
    r = client.post(f"/forms/program/{program['id']}",
                    json={'fields': [{'title': 'Big', 'field_type': 'text', 'order': 10 ** 20}]},
                    headers=admin['headers'])
    assert r.status_code == 422


def test_blank_names_rejected_after_strip(admin, create_program):
    r = client.post('/programs', json=program_payload(name='   '), headers=admin['headers'])
    assert r.status_code == 422
    program = create_program(admin, name='  Padded  ')
    assert program['name'] == 'Padded'
    r = client.put(f"/programs/{program['id']}", json={'name': '   '}, headers=admin['headers'])
    assert r.status_code == 422
    r = client.put(f"/programs/{program['id']}", json={'name': ' Renamed '}, headers=admin['headers'])
    assert r.status_code == 200
    assert r.json()['name'] == 'Renamed'


def test_dates_with_offsets_compared_in_utc(admin, create_program):
    program = create_program(admin)
    # stored end_date is 2026-04-30T00:00 UTC
    r = client.put(f"/programs/{program['id']}", json={'start_date': '2026-04-30T01:00:00+02:00'},
                   headers=admin['headers'])
    assert r.status_code == 200
    r = client.put(f"/programs/{program['id']}", json={'start_date': '2026-04-30T01:00:00-02:00'},
                   headers=admin['headers'])
    assert r.status_code == 400
    r = client.post('/programs', json=program_payload(start_date='2026-02-01T00:00:00+00:00',
                                                      end_date='2026-02-01T01:00:00+02:00'),
                    headers=admin['headers'])
    assert r.status_code == 422
