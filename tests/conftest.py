import os

# The engine is created when the app module is imported
os.environ['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'

import pytest
from werkzeug.security import generate_password_hash

from app import app
from models import db, User, Task, TaskShare
from services import ai


@pytest.fixture
def client():
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False  # Disable CSRF for easier testing
    app.config['GOOGLE_API_KEY'] = None

    with app.test_client() as client:
        with app.app_context():
            db.create_all()
            yield client
            db.session.remove()
            db.drop_all()


@pytest.fixture
def make_user(client):
    def _make_user(email, name=None, password='password'):
        user = User(email=email, name=name, password_hash=generate_password_hash(password, method='scrypt'))
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_task(client):
    def _make_task(owner, title='Draft report', **fields):
        task = Task(user_id=owner.id, title=title, **fields)
        db.session.add(task)
        db.session.commit()
        return task
    return _make_task


@pytest.fixture
def make_share(client):
    """Insert a share row directly, bypassing the invitation workflow."""
    def _make_share(task, grantee, permission_level='view', status='accepted'):
        share = TaskShare(task_id=task.id, owner_id=task.user_id, shared_with_id=grantee.id,
                          permission_level=permission_level, status=status)
        db.session.add(share)
        db.session.commit()
        return share
    return _make_share


@pytest.fixture
def alice(make_user):
    return make_user('alice@example.com', name='Alice')


@pytest.fixture
def bob(make_user):
    return make_user('bob@example.com', name='Bob')


@pytest.fixture
def carol(make_user):
    return make_user('carol@example.com')


@pytest.fixture
def login(client):
    def _login(user, password='password'):
        return client.post('/login', data={'email': user.email, 'password': password})
    return _login


@pytest.fixture
def auth_client(client, alice, login):
    login(alice)
    return client, alice


@pytest.fixture
def runner(client):
    return app.test_cli_runner()


@pytest.fixture
def fake_ai(monkeypatch):
    prompts = []

    def generate(prompt):
        prompts.append(prompt)
        return 'Start with an outline.'

    monkeypatch.setattr(ai, 'generate', generate)
    return prompts
