from datetime import datetime

import pytest

from app import app
from errors import Forbidden, NotFound
from models import db, Task
from services import sharing, tasks
from utils import request_data


def test_create_and_list(alice, bob):
    tasks.create_task(alice.id, title='Write intro', priority='high', due_date='2026-11-01')
    tasks.create_task(alice.id, title='Book room', category='work', status='completed')
    tasks.create_task(bob.id, title='Not mine')

    mine = tasks.list_tasks(alice.id)
    assert {t.title for t in mine} == {'Write intro', 'Book room'}
    assert [t.title for t in tasks.list_tasks(alice.id, 'completed')] == ['Book room']
    intro = next(t for t in mine if t.title == 'Write intro')
    assert intro.priority == 'high'
    assert intro.category == 'other'
    assert intro.due_date == datetime(2026, 11, 1)


@pytest.mark.parametrize('fields', [
    {'title': ''},
    {'title': 'x', 'priority': 'urgent'},
    {'title': 'x', 'category': 'misc'},
    {'title': 'x', 'status': 'done'},
    {'title': 'x', 'due_date': 'tomorrow'},
])
def test_create_rejects_invalid_fields(alice, fields):
    with pytest.raises(ValueError):
        tasks.create_task(alice.id, **fields)
    assert Task.query.count() == 0


def test_get_task_respects_access(alice, bob, carol, make_task, make_share):
    task = make_task(alice)
    make_share(task, bob, 'view')

    assert tasks.get_task(task.id, bob.id).id == task.id
    with pytest.raises(Forbidden):
        tasks.get_task(task.id, carol.id)
    with pytest.raises(NotFound):
        tasks.get_task(task.id + 100, alice.id)


def test_edit_grantee_can_update(alice, bob, make_task, make_share):
    task = make_task(alice)
    make_share(task, bob, 'edit')

    tasks.update_task(task.id, bob.id, title='Final report', description='v2')
    tasks.change_status(task.id, bob.id, 'in_progress')

    task = db.session.get(Task, task.id)
    assert (task.title, task.description, task.status) == ('Final report', 'v2', 'in_progress')


def test_view_grantee_cannot_update(alice, bob, make_task, make_share):
    task = make_task(alice)
    make_share(task, bob, 'view')
    with pytest.raises(Forbidden):
        tasks.change_status(task.id, bob.id, 'completed')
    with pytest.raises(Forbidden):
        tasks.add_step(task.id, bob.id, 'Outline')


def test_only_owner_deletes(alice, bob, make_task, make_share):
    task = make_task(alice)
    make_share(task, bob, 'admin')
    with pytest.raises(Forbidden):
        tasks.delete_task(task.id, bob.id)
    tasks.delete_task(task.id, alice.id)
    assert Task.query.count() == 0


def test_steps_and_progress(alice, bob, make_task, make_share):
    task = make_task(alice)
    make_share(task, bob, 'edit')
    first = tasks.add_step(task.id, alice.id, 'Outline')
    second = tasks.add_step(task.id, bob.id, 'Draft')
    assert (first.order_index, second.order_index) == (0, 1)

    tasks.toggle_step(first.id, bob.id)
    assert db.session.get(Task, task.id).progress == 50

    tasks.delete_step(second.id, alice.id)
    assert db.session.get(Task, task.id).progress == 100
    with pytest.raises(NotFound):
        tasks.toggle_step(second.id, alice.id)


def test_task_routes(auth_client, bob, make_share):
    client, alice = auth_client

    response = client.post('/tasks', data={'title': 'Draft report', 'priority': 'low'})
    assert response.status_code == 201
    task_id = response.get_json()['id']
    assert response.get_json()['is_owner'] is True

    response = client.post('/tasks', json={'title': 'Bad', 'priority': 'urgent'})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Invalid priority: urgent', 'retry': False}

    response = client.post(f'/tasks/{task_id}/status', json={'status': 'completed'})
    assert response.get_json()['status'] == 'completed'

    response = client.put(f'/tasks/{task_id}', json={'description': 'For the board'})
    assert response.get_json()['description'] == 'For the board'

    response = client.post(f'/tasks/{task_id}/steps', json={'title': 'Outline'})
    step_id = response.get_json()['id']
    client.post(f'/steps/{step_id}/toggle')
    assert client.get(f'/tasks/{task_id}').get_json()['progress'] == 100

    assert [t['id'] for t in client.get('/tasks').get_json()] == [task_id]
    assert client.delete(f'/steps/{step_id}').status_code == 200
    assert client.delete(f'/tasks/{task_id}').status_code == 200
    assert client.get(f'/tasks/{task_id}').status_code == 404


def test_task_routes_forbidden(client, alice, bob, make_task, make_share, login):
    task = make_task(alice)
    make_share(task, bob, 'view')
    login(bob)

    response = client.get(f'/tasks/{task.id}')
    assert response.status_code == 200
    assert response.get_json()['permission'] == 'view'
    assert response.get_json()['can_mutate'] is False

    response = client.post(f'/tasks/{task.id}/status', json={'status': 'completed'})
    assert response.status_code == 403
    assert response.get_json()['retry'] is False

    response = client.get('/tasks/shared')
    assert response.get_json()[0]['shared_by'] == 'alice@example.com'


def test_shared_tasks_partial(client, alice, bob, make_task, make_share, login):
    task = make_task(alice, 'Shared plan')
    share = make_share(task, bob, 'edit')
    login(bob)

    response = client.get('/tasks/shared', headers={'HX-Request': 'true'})
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert f'id="shared-{share.id}"' in html
    assert 'Shared plan' in html
    assert 'from alice@example.com' in html

    sharing.revoke(task.id, bob.id, alice.id)
    html = client.get('/tasks/shared', headers={'HX-Request': 'true'}).get_data(as_text=True)
    assert 'Nothing shared with you.' in html


def test_request_data_reads_json_or_form(client):
    with app.test_request_context('/tasks', method='POST', json={'title': 'From JSON'}):
        assert request_data()['title'] == 'From JSON'
    with app.test_request_context('/tasks', method='POST', data={'title': 'From form'}):
        assert request_data()['title'] == 'From form'
