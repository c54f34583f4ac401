"""Append-only trail of share lifecycle events.

Share mutations are observed through session events instead of being logged
by each caller: ``after_flush`` captures what changed while attribute history
is still available, ``after_commit`` appends the records in a transaction of
their own. A failed append is logged and dropped so it can never undo or
fail the share mutation that produced it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import NotFound
from models import db, Task, TaskShare, TaskShareActivity, User, ACTIVITY_TYPES, utcnow, isoformat
from services import access

logger = logging.getLogger(__name__)

PENDING_KEY = 'pending_share_activities'


@dataclass
class ActivityEntry:
    id: int
    task_id: int
    user_id: int
    activity_type: str
    activity_data: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    user_email: str = ''
    user_name: str = ''

    def to_dict(self):
        return dict(self.__dict__)


def _entry(task_id, user_id, activity_type, payload):
    return {
        'task_id': task_id,
        'user_id': user_id,
        'activity_type': activity_type,
        'activity_data': payload,
        'created_at': utcnow(),
    }


def _change(obj, attr):
    history = inspect(obj).attrs[attr].history
    if history.deleted and history.added and history.deleted[0] != history.added[0]:
        return history.deleted[0], history.added[0]
    return None


def _append(records):
    try:
        with db.engine.begin() as conn:
            conn.execute(TaskShareActivity.__table__.insert(), records)
        return True
    except SQLAlchemyError:
        logger.exception('Failed to record %d share activities', len(records))
        return False


def record(task_id, actor_id, activity_type, payload=None):
    """Append one activity record immediately. Returns False when it could not be stored."""
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f'Invalid activity type: {activity_type}')
    return _append([_entry(task_id, actor_id, activity_type, payload or {})])


def capture(session):
    deleted_tasks = {obj.id for obj in session.deleted if isinstance(obj, Task)}
    records = []

    for obj in session.new:
        if isinstance(obj, TaskShare):
            records.append(_entry(obj.task_id, obj.owner_id, 'share', {
                'shared_with': obj.shared_with_id,
                'permission_level': obj.permission_level,
            }))

    for obj in session.dirty:
        if not isinstance(obj, TaskShare) or not session.is_modified(obj):
            continue
        status = _change(obj, 'status')
        if status:
            old, new = status
            actor = obj.shared_with_id if new in ('accepted', 'rejected') else obj.owner_id
            records.append(_entry(obj.task_id, actor, 'status_change', {
                'old_status': old,
                'new_status': new,
            }))
        permission = _change(obj, 'permission_level')
        if permission:
            records.append(_entry(obj.task_id, obj.owner_id, 'update', {
                'shared_with': obj.shared_with_id,
                'old_permission': permission[0],
                'new_permission': permission[1],
            }))

    for obj in session.deleted:
        # Shares removed with their task leave nothing to attach a trail to
        if isinstance(obj, TaskShare) and obj.task_id not in deleted_tasks:
            records.append(_entry(obj.task_id, obj.owner_id, 'unshare', {
                'shared_with': obj.shared_with_id,
            }))

    return records


@event.listens_for(Session, 'after_flush')
def _collect_share_activity(session, flush_context):
    records = capture(session)
    if records:
        session.info.setdefault(PENDING_KEY, []).extend(records)


@event.listens_for(Session, 'after_commit')
def _write_share_activity(session):
    records = session.info.pop(PENDING_KEY, None)
    if records:
        _append(records)


@event.listens_for(Session, 'after_rollback')
def _discard_share_activity(session):
    session.info.pop(PENDING_KEY, None)


def list_activities(task_id, actor_id) -> List[ActivityEntry]:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound(f'Task with ID {task_id} not found')
    access.require_view(task, actor_id)
    rows = (db.session.query(TaskShareActivity, User)
            .outerjoin(User, User.id == TaskShareActivity.user_id)
            .filter(TaskShareActivity.task_id == task.id)
            .order_by(TaskShareActivity.created_at.desc(), TaskShareActivity.id.desc())
            .all())
    return [ActivityEntry(
        id=a.id,
        task_id=a.task_id,
        user_id=a.user_id,
        activity_type=a.activity_type,
        activity_data=a.activity_data or {},
        created_at=isoformat(a.created_at),
        user_email=u.email if u else '',
        user_name=(u.name or '') if u else '',
    ) for a, u in rows]
