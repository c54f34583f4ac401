from sqlalchemy.exc import OperationalError

from models import db, Notification
from services import views
from services.realtime import feed
from utils import create_notification


def test_notifications(auth_client, make_task):
    client, alice = auth_client
    task = make_task(alice)
    create_notification(alice.id, 'First', task_id=task.id)
    create_notification(alice.id, 'Second', type='warning')
    db.session.commit()

    data = client.get('/api/notifications').get_json()
    assert {n['message'] for n in data} == {'First', 'Second'}

    first = Notification.query.filter_by(message='First').one()
    client.post(f'/api/notifications/mark_read/{first.id}')
    assert [n['message'] for n in client.get('/api/notifications').get_json()] == ['Second']

    client.post('/api/notifications/read')
    assert client.get('/api/notifications').get_json() == []


def test_feed_without_cursor_returns_head(auth_client, make_task):
    client, alice = auth_client
    make_task(alice)
    assert client.get('/api/feed/tasks').get_json() == {'events': [], 'cursor': feed.head()}


def test_feed_tasks_stream(auth_client, bob, make_task):
    client, alice = auth_client
    cursor = client.get('/api/feed/tasks').get_json()['cursor']
    make_task(alice, 'Mine')
    make_task(bob, 'Not mine')

    data = client.get(f'/api/feed/tasks?cursor={cursor}').get_json()
    assert [(e['operation'], e['new']['title']) for e in data['events']] == [('INSERT', 'Mine')]
    assert data['cursor'] == feed.head()


def test_feed_shares_stream(client, alice, bob, carol, make_task, login):
    task = make_task(alice)
    login(bob)
    cursor = client.get('/api/feed/shares').get_json()['cursor']

    login(alice)
    client.post(f'/tasks/{task.id}/shares', json={'email': carol.email})
    client.post(f'/tasks/{task.id}/shares', json={'email': bob.email, 'permission_level': 'admin'})

    login(bob)
    events = client.get(f'/api/feed/shares?cursor={cursor}').get_json()['events']
    assert len(events) == 1
    assert events[0]['new']['shared_with_id'] == bob.id
    assert events[0]['new']['permission_level'] == 'admin'


def test_feed_gap_asks_for_resync(auth_client, make_task):
    client, alice = auth_client
    for i in range(3):
        make_task(alice, f'Task {i}')
    feed.prune(1)

    assert client.get('/api/feed/tasks?cursor=0').get_json() == {'resync': True, 'cursor': feed.head()}


def test_feed_chat_stream(client, alice, bob, make_task, make_share, login, fake_ai):
    task = make_task(alice)
    make_share(task, bob, 'view')
    login(alice)
    cursor = client.get(f'/api/feed/chat?task_id={task.id}').get_json()['cursor']
    client.post(f'/tasks/{task.id}/chat', json={'message': 'Plan?'})

    events = client.get(f'/api/feed/chat?task_id={task.id}&cursor={cursor}').get_json()['events']
    assert [e['new']['is_user'] for e in events] == [True, False]

    login(bob)
    assert client.get(f'/api/feed/chat?task_id={task.id}').status_code == 403
    assert client.get('/api/feed/chat').status_code == 400


def test_feed_unknown_stream(auth_client):
    client, _ = auth_client
    assert client.get('/api/feed/projects').status_code == 404


def test_store_failure_is_transient(auth_client, monkeypatch):
    client, _ = auth_client

    def broken(user_id):
        raise OperationalError('SELECT', {}, Exception('database is locked'))

    monkeypatch.setattr(views, 'pending_invitations', broken)
    response = client.get('/invitations')
    assert response.status_code == 503
    assert response.get_json() == {'error': 'Something went wrong. Try again.', 'retry': True}
