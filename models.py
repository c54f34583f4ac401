from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

PRIORITIES = ('high', 'medium', 'low')
CATEGORIES = ('work', 'study', 'chores', 'health', 'social', 'other')
TASK_STATUSES = ('pending', 'in_progress', 'completed')

# Ordered by increasing capability
PERMISSION_LEVELS = ('view', 'edit', 'admin')
SHARE_STATUSES = ('pending', 'accepted', 'rejected')
ACTIVITY_TYPES = ('create', 'update', 'delete', 'share', 'unshare', 'status_change', 'comment')


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    # SQLite hands back naive datetimes; render everything as naive UTC
    if value is None:
        return None
    if getattr(value, 'tzinfo', None) is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(150), nullable=True)
    password_hash = db.Column(db.String(200), nullable=False)
    date_joined = db.Column(db.DateTime, default=utcnow)

    tasks = db.relationship('Task', backref='owner', lazy=True, foreign_keys='[Task.user_id]')
    notifications = db.relationship('Notification', backref='user', lazy=True, cascade='all, delete-orphan')

    @property
    def display_name(self):
        return self.name or self.email


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(10), default='medium')  # high, medium, low
    category = db.Column(db.String(20), default='other')
    status = db.Column(db.String(20), default='pending')  # pending, in_progress, completed
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    start_date = db.Column(db.DateTime, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)

    steps = db.relationship('TaskStep', backref='task', lazy=True, cascade='all, delete-orphan',
                            order_by='TaskStep.order_index')
    shares = db.relationship('TaskShare', backref='task', lazy=True, cascade='all, delete-orphan')
    activities = db.relationship('TaskShareActivity', backref='task', lazy=True, cascade='all, delete-orphan')
    chats = db.relationship('ChatMessage', backref='task', lazy=True, cascade='all, delete-orphan')
    notifications = db.relationship('Notification', backref='task', lazy=True, cascade='all, delete-orphan')

    @property
    def progress(self):
        if not self.steps:
            return 0
        done = sum(1 for s in self.steps if s.is_completed)
        return round(done * 100 / len(self.steps))

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'description': self.description or '',
            'priority': self.priority,
            'category': self.category,
            'status': self.status,
            'progress': self.progress,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'start_date': isoformat(self.start_date),
            'due_date': isoformat(self.due_date),
        }


class TaskStep(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_completed = db.Column(db.Boolean, default=False)
    order_index = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'title': self.title,
            'description': self.description or '',
            'is_completed': self.is_completed,
            'order_index': self.order_index,
        }


class TaskShare(db.Model):
    __tablename__ = 'task_share'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    shared_with_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    permission_level = db.Column(db.String(10), nullable=False, default='view')  # view, edit, admin
    status = db.Column(db.String(10), nullable=False, default='pending', index=True)  # pending, accepted, rejected
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    owner = db.relationship('User', foreign_keys=[owner_id], backref='shares_given', lazy=True)
    grantee = db.relationship('User', foreign_keys=[shared_with_id], backref='shares_received', lazy=True)

    __table_args__ = (
        db.UniqueConstraint('task_id', 'shared_with_id', name='_task_grantee_uc'),
        db.CheckConstraint("permission_level IN ('view', 'edit', 'admin')", name='ck_share_permission'),
        db.CheckConstraint("status IN ('pending', 'accepted', 'rejected')", name='ck_share_status'),
    )


class TaskShareActivity(db.Model):
    __tablename__ = 'task_share_activity'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    activity_type = db.Column(db.String(20), nullable=False)
    activity_data = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship('User', lazy=True)


class ChatMessage(db.Model):
    __tablename__ = 'task_chat'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_user = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'user_id': self.user_id,
            'message': self.message,
            'is_user': self.is_user,
            'created_at': isoformat(self.created_at),
        }


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    is_read = db.Column(db.Boolean, default=False)
    type = db.Column(db.String(20), default='info')
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=True)


class ChangeEvent(db.Model):
    __tablename__ = 'change_event'

    id = db.Column(db.Integer, primary_key=True)  # feed cursor
    table_name = db.Column(db.String(50), nullable=False, index=True)
    operation = db.Column(db.String(10), nullable=False)  # INSERT, UPDATE, DELETE
    row = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
