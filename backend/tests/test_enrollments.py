from fastapi.testclient import TestClient

from mentorgain.main import app
from conftest import answers_for

client = TestClient(app)


def test_apply_stores_typed_responses(admin, user, create_program, enroll):
    program = create_program(admin)
    responses = answers_for(
        program, Experience=3, Learning_style='Reading', Stack=['HTML', 'JS'],
        Goals='Ship a portfolio', Resume='s3://bucket/resume.pdf',
    )
    r = enroll(user, program, responses)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body['status'] == 'pending'
    assert body['user_id'] == user['id']
    assert body['mentorship_program']['id'] == program['id']
    by_title = {resp['form_field']['title']: resp for resp in body['responses']}
    assert [resp['form_field']['title'] for resp in body['responses']] == [
        'Experience', 'Learning style', 'Stack', 'Goals', 'Resume',
    ]
    assert by_title['Experience']['number_response'] == 3
    assert by_title['Experience']['text_response'] is None
    assert by_title['Learning style']['select_response'] == 'Reading'
    assert by_title['Stack']['multi_select_response'] == ['HTML', 'JS']
    assert by_title['Resume']['file_response'] == 's3://bucket/resume.pdf'


def test_missing_required_fields_listed(admin, user, create_program, enroll):
    program = create_program(admin)
    r = enroll(user, program, answers_for(program, Goals='anything'))
    assert r.status_code == 400
    assert r.json()['detail'] == 'Missing required fields: Experience, Learning style'
    assert client.get('/users/me/enrollments', headers=user['headers']).json() == []


def test_invalid_response_values_rejected(admin, user, create_program, enroll):
    program = create_program(admin)
    bad_select = answers_for(program, Experience=1, Learning_style='Podcast')
    assert enroll(user, program, bad_select).status_code == 400
    wrong_slot = answers_for(program, Experience=1, Learning_style='Video')
    wrong_slot[0]['text_response'] = 'one'
    assert enroll(user, program, wrong_slot).status_code == 400
    not_a_number = answers_for(program, Learning_style='Video')
    not_a_number.append({'form_field_id': program['form_fields'][0]['id'], 'number_response': 'lots'})
    assert enroll(user, program, not_a_number).status_code == 422


def test_field_from_other_program_rejected(admin, user, create_program, enroll):
    program = create_program(admin, name='A')
    other = create_program(admin, name='B')
    responses = answers_for(program, Experience=1, Learning_style='Video')
    responses.append({'form_field_id': other['form_fields'][3]['id'], 'text_response': 'hi'})
    r = enroll(user, program, responses)
    assert r.status_code == 400
    assert 'does not belong' in r.json()['detail']


def test_one_enrollment_per_program(admin, user, create_program, enroll):
    program = create_program(admin)
    assert enroll(user, program).status_code == 201
    again = enroll(user, program)
    assert again.status_code == 409


def test_closed_and_unknown_programs(admin, user, create_program, enroll):
    program = create_program(admin)
    client.put(f"/programs/{program['id']}", json={'status': 'closed'}, headers=admin['headers'])
    r = enroll(user, program)
    assert r.status_code == 400
    assert 'not accepting' in r.json()['detail']
    r = client.post('/enrollments', json={'mentorship_program_id': '00000000-0000-0000-0000-000000000000'},
                    headers=user['headers'])
    assert r.status_code == 404


def test_accept_respects_capacity(admin, make_user, create_program, enroll):
    program = create_program(admin, max_participants=1)
    first = enroll(make_user('user'), program).json()
    second = enroll(make_user('user'), program).json()
    r = client.put(f"/enrollments/{first['id']}/accept", headers=admin['headers'])
    assert r.status_code == 200
    assert r.json()['status'] == 'accepted'
    # accepting again must not count the enrollment twice
    assert client.put(f"/enrollments/{first['id']}/accept", headers=admin['headers']).status_code == 200
    r = client.put(f"/enrollments/{second['id']}/accept", headers=admin['headers'])
    assert r.status_code == 400
    assert 'maximum participants' in r.json()['detail']
    assert client.put(f"/enrollments/{second['id']}/reject", headers=admin['headers']).json()['status'] == 'rejected'
    late = enroll(make_user('user'), program)
    assert late.status_code == 400
    assert late.json()['detail'] == 'This program is full'


def test_review_limited_to_program_owner(make_user, user, create_program, enroll):
    alice = make_user('admin')
    bob = make_user('admin')
    program = create_program(alice)
    enrollment = enroll(user, program).json()
    assert client.put(f"/enrollments/{enrollment['id']}/accept", headers=bob['headers']).status_code == 403
    assert client.put(f"/enrollments/{enrollment['id']}/accept", headers=user['headers']).status_code == 403
    assert client.get(f"/enrollments/{enrollment['id']}", headers=bob['headers']).status_code == 403
    assert client.get(f"/enrollments/program/{program['id']}", headers=bob['headers']).status_code == 403
    listed = client.get(f"/enrollments/program/{program['id']}", headers=alice['headers']).json()
    assert [e['id'] for e in listed] == [enrollment['id']]
    assert listed[0]['user']['email'] == user['email']


def test_listing_is_scoped_by_role(make_user, superadmin, create_program, enroll):
    alice = make_user('admin')
    bob = make_user('admin')
    u1 = make_user('user')
    u2 = make_user('user')
    pa = create_program(alice, name='Alice program')
    pb = create_program(bob, name='Bob program')
    e1 = enroll(u1, pa).json()
    e2 = enroll(u2, pb).json()

    mine = client.get('/enrollments', headers=u1['headers']).json()
    assert [e['id'] for e in mine] == [e1['id']]
    assert client.get(f"/enrollments/{e2['id']}", headers=u1['headers']).status_code == 403

    alice_view = client.get('/enrollments', headers=alice['headers']).json()
    assert [e['id'] for e in alice_view] == [e1['id']]
    r = client.get('/enrollments', params={'program_id': pb['id']}, headers=alice['headers'])
    assert r.status_code == 403

    everything = client.get('/enrollments', headers=superadmin['headers']).json()
    assert {e['id'] for e in everything} == {e1['id'], e2['id']}
    filtered = client.get('/enrollments', params={'program_id': pb['id']}, headers=superadmin['headers']).json()
    assert [e['id'] for e in filtered] == [e2['id']]


def test_withdraw_rules(make_user, create_program, enroll):
    alice = make_user('admin')
    bob = make_user('admin')
    u1 = make_user('user')
    u2 = make_user('user')
    program = create_program(alice)
    e1 = enroll(u1, program).json()
    e2 = enroll(u2, program).json()
    assert client.delete(f"/enrollments/{e1['id']}", headers=u2['headers']).status_code == 403
    assert client.delete(f"/enrollments/{e1['id']}", headers=bob['headers']).status_code == 403
    assert client.delete(f"/enrollments/{e1['id']}", headers=u1['headers']).status_code == 200
    assert client.delete(f"/enrollments/{e2['id']}", headers=alice['headers']).status_code == 200
    assert client.get(f"/enrollments/{e1['id']}", headers=u1['headers']).status_code == 404
    # withdrawing frees the slot for a fresh application
    assert enroll(u1, program).status_code == 201


def test_number_answers_must_be_json_integers(admin, user, create_program, enroll):
    program = create_program(admin)
    for value in (True, '7', 2.5):
        r = enroll(user, program, answers_for(program, Experience=value, Learning_style='Video'))
        assert r.status_code == 422, value
    assert client.get('/users/me/enrollments', headers=user['headers']).json() == []
    assert enroll(user, program, answers_for(program, Experience=7, Learning_style='Video')).status_code == 201


def test_oversized_number_answer_rejected(admin, user, create_program, enroll):
    program = create_program(admin)
    r = enroll(user, program, answers_for(program, Experience=10 ** 20, Learning_style='Video'))
    assert r.status_code == 422
    r = enroll(user, program, answers_for(program, Experience=-(10 ** 20), Learning_style='Video'))
    assert r.status_code == 422
