import pytest

from errors import Forbidden
from services import chat, invitations, sharing, views


def test_pending_invitations(alice, bob, make_task):
    task = make_task(alice, description='Q3 numbers')
    sharing.create_share(task.id, bob.email, 'view', actor_id=alice.id)

    pending = views.pending_invitations(bob.id)
    assert len(pending) == 1
    invite = pending[0]
    assert invite.permission_label == 'View Only'
    assert invite.task_title == 'Draft report'
    assert invite.task_description == 'Q3 numbers'
    assert invite.owner_email == 'alice@example.com'
    assert invite.owner_name == 'Alice'
    assert views.pending_count(bob.id) == 1
    assert views.pending_invitations(alice.id) == []


def test_shared_with_me(alice, bob, make_task, make_share):
    report = make_task(alice, 'Report', status='in_progress')
    slides = make_task(alice, 'Slides')
    make_share(report, bob, 'edit')
    make_share(slides, bob, 'admin')

    shared = views.shared_with_me(bob.id)
    assert {t.task['title'] for t in shared} == {'Report', 'Slides'}
    entry = next(t for t in shared if t.task['title'] == 'Report').to_dict()
    assert entry['is_shared'] is True
    assert entry['shared_by'] == 'alice@example.com'
    assert entry['owner_name'] == 'Alice'
    assert entry['permission_level'] == 'edit'
    assert entry['can_mutate'] is True
    assert entry['can_chat'] is False

    filtered = views.shared_with_me(bob.id, status_filter='in_progress')
    assert [t.task['title'] for t in filtered] == ['Report']
    assert len(views.shared_with_me(bob.id, status_filter='all')) == 2


def test_pending_shares_are_not_shared_with_me(alice, bob, make_task, make_share):
    make_share(make_task(alice), bob, 'view', status='pending')
    assert views.shared_with_me(bob.id) == []


def test_refresh(alice, bob, make_task):
    task = make_task(alice)
    share = sharing.create_share(task.id, bob.email, 'view', actor_id=alice.id)
    assert views.refresh(bob.id)['pending_count'] == 1

    invitations.respond(share.id, 'accepted', bob.id)
    state = views.refresh(bob.id)
    assert state['pending'] == []
    assert state['pending_count'] == 0
    assert state['shared_with_me'][0]['title'] == 'Draft report'


def test_watch_pending_invitations(alice, bob, make_task):
    first = make_task(alice, 'First')
    second = make_task(alice, 'Second')
    share = sharing.create_share(first.id, bob.email, 'view', actor_id=alice.id)

    reconciler = views.watch_pending_invitations(bob.id)
    assert [i['task_title'] for i in reconciler.items] == ['First']

    sharing.create_share(second.id, bob.email, 'edit', actor_id=alice.id)
    assert reconciler.sync() == 1
    assert [i['task_title'] for i in reconciler.items] == ['First', 'Second']
    assert reconciler.items[1]['permission_label'] == 'Can Edit'

    invitations.respond(share.id, 'accepted', bob.id)
    assert reconciler.sync() == 1
    assert [i['task_title'] for i in reconciler.items] == ['Second']
    reconciler.close()


def test_watch_chat(alice, make_task, fake_ai):
    task = make_task(alice)
    reconciler = views.watch_chat(task, alice.id)
    assert len(reconciler) == 0

    chat.send_message(task, alice.id, 'Where do I start?')
    assert reconciler.sync() == 2
    assert [(m['message'], m['is_user']) for m in reconciler.items] == [
        ('Where do I start?', True),
        ('Start with an outline.', False),
    ]
    # Redelivery of the same cursor range changes nothing
    reconciler.subscription.seek(0)
    assert reconciler.sync() == 0
    assert len(reconciler) == 2
    reconciler.close()


def test_watch_chat_requires_chat_access(alice, bob, make_task, make_share):
    task = make_task(alice)
    make_share(task, bob, 'edit')
    with pytest.raises(Forbidden):
        views.watch_chat(task, bob.id)
