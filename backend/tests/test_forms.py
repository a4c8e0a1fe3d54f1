from fastapi.testclient import TestClient

from mentorgain.main import app

client = TestClient(app)


def test_list_fields_in_order(admin, user, create_program):
    program = create_program(admin)
    r = client.get(f"/forms/program/{program['id']}", headers=user['headers'])
    assert r.status_code == 200
    assert [f['title'] for f in r.json()] == ['Experience', 'Learning style', 'Stack', 'Goals', 'Resume']


def test_closed_program_form_hidden_from_users(admin, user, create_program):
    program = create_program(admin)
    client.put(f"/programs/{program['id']}", json={'status': 'closed'}, headers=admin['headers'])
    assert client.get(f"/forms/program/{program['id']}", headers=user['headers']).status_code == 403
    assert client.get(f"/forms/program/{program['id']}", headers=admin['headers']).status_code == 200


def test_batch_create_appends_after_existing(admin, create_program):
    program = create_program(admin)
    r = client.post(
        f"/forms/program/{program['id']}",
        json={'fields': [
            {'title': 'LinkedIn', 'field_type': 'text'},
            {'title': 'Timezone', 'field_type': 'select', 'options': ['UTC', 'CET'], 'is_required': True},
        ]},
        headers=admin['headers'],
    )
    assert r.status_code == 201
    assert [f['order'] for f in r.json()] == [5, 6]
    listed = client.get(f"/forms/program/{program['id']}", headers=admin['headers']).json()
    assert listed[-1]['title'] == 'Timezone'


def test_batch_create_on_empty_form_starts_at_zero(admin, create_program):
    program = create_program(admin, form_fields=[])
    r = client.post(f"/forms/program/{program['id']}",
                    json={'fields': [{'title': 'Why', 'field_type': 'text'}]}, headers=admin['headers'])
    assert r.status_code == 201
    assert r.json()[0]['order'] == 0


def test_only_owner_edits_fields(make_user, create_program):
    alice = make_user('admin')
    bob = make_user('admin')
    program = create_program(alice)
    field_id = program['form_fields'][0]['id']
    r = client.post(f"/forms/program/{program['id']}",
                    json={'fields': [{'title': 'X', 'field_type': 'text'}]}, headers=bob['headers'])
    assert r.status_code == 403
    assert client.put(f'/forms/{field_id}', json={'title': 'Y'}, headers=bob['headers']).status_code == 403
    assert client.delete(f'/forms/{field_id}', headers=bob['headers']).status_code == 403


def test_update_field_revalidates_definition(admin, create_program):
    program = create_program(admin)
    goals = next(f for f in program['form_fields'] if f['title'] == 'Goals')
    r = client.put(f"/forms/{goals['id']}", json={'field_type': 'select'}, headers=admin['headers'])
    assert r.status_code == 400
    r = client.put(f"/forms/{goals['id']}", json={'field_type': 'select', 'options': ['Job', 'Hobby'], 'is_required': True},
                   headers=admin['headers'])
    assert r.status_code == 200
    body = r.json()
    assert body['field_type'] == 'select'
    assert body['options'] == ['Job', 'Hobby']
    assert body['is_required'] is True

    style = next(f for f in program['form_fields'] if f['title'] == 'Learning style')
    r = client.put(f"/forms/{style['id']}", json={'field_type': 'text'}, headers=admin['headers'])
    assert r.status_code == 200
    assert r.json()['options'] is None


def test_delete_field(admin, create_program):
    program = create_program(admin)
    field_id = program['form_fields'][0]['id']
    assert client.delete(f'/forms/{field_id}', headers=admin['headers']).status_code == 200
    assert client.delete(f'/forms/{field_id}', headers=admin['headers']).status_code == 404
    remaining = client.get(f"/forms/program/{program['id']}", headers=admin['headers']).json()
    assert len(remaining) == 4
