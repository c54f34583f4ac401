from models import ChangeEvent
from services import sharing
from services.realtime import feed


def test_init_db(runner):
    result = runner.invoke(args=['init-db'])
    assert result.exit_code == 0
    assert 'Database initialized.' in result.output


def test_feed_prune(runner, alice, make_task):
    for i in range(5):
        make_task(alice, f'Task {i}')

    result = runner.invoke(args=['feed', 'prune', '--keep', '2'])
    assert result.exit_code == 0
    assert 'Pruned 3 change events.' in result.output
    assert ChangeEvent.query.count() == 2


def test_feed_prune_uses_retention_setting(runner, alice, make_task, monkeypatch):
    from app import app
    monkeypatch.setitem(app.config, 'FEED_RETENTION', 1)
    make_task(alice, 'One')
    make_task(alice, 'Two')

    result = runner.invoke(args=['feed', 'prune'])
    assert 'Pruned 1 change events.' in result.output
    assert feed.floor() == feed.head()


def test_shares_watch_once(runner, alice, bob, make_task):
    task = make_task(alice)
    sharing.create_share(task.id, bob.email, 'edit', actor_id=alice.id)
    before = feed.open_subscriptions

    result = runner.invoke(args=['shares', 'watch', 'BOB@example.com', '--once'])
    assert result.exit_code == 0
    assert '1 pending invitation(s)' in result.output
    assert '"Draft report" from alice@example.com (Can Edit)' in result.output
    assert feed.open_subscriptions == before


def test_shares_watch_unknown_user(runner):
    result = runner.invoke(args=['shares', 'watch', 'ghost@example.com', '--once'])
    assert result.exit_code != 0
    assert 'not found' in result.output
