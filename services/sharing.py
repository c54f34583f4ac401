"""Share ledger: who may see or work on which task.

One share row per (task, grantee). Owners create, re-permission and revoke
shares; only the grantee moves an invitation out of ``pending`` (see
``services.invitations``). Activity records and feed events are produced
by session hooks, so nothing here logs them explicitly.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from errors import Conflict, NotFound
from models import db, Task, TaskShare, User, utcnow, isoformat
from services import access, identity
from utils import create_notification

logger = logging.getLogger(__name__)


@dataclass
class SharedUser:
    id: int
    email: str
    name: str
    permission_level: str
    status: str
    share_id: int
    permission_label: str = ''

    def to_dict(self):
        return dict(self.__dict__)


def get_task(task_id):
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound(f'Task with ID {task_id} not found')
    return task


def find_share(task_id, grantee_id) -> Optional[TaskShare]:
    return TaskShare.query.filter_by(task_id=task_id, shared_with_id=grantee_id).first()


def create_share(task_id, grantee_email, permission_level='view', actor_id=None):
    access.validate_level(permission_level)
    task = get_task(task_id)
    access.require_owner(task, actor_id)
    grantee = identity.resolve(grantee_email)
    if grantee.id == task.user_id:
        raise Conflict('You already own this task')

    share = find_share(task.id, grantee.id)
    if share:
        share.permission_level = permission_level
        if share.status == 'rejected':
            share.status = 'pending'
        share.updated_at = utcnow()
    else:
        share = TaskShare(
            task_id=task.id,
            owner_id=task.user_id,
            shared_with_id=grantee.id,
            permission_level=permission_level,
            status='pending',
        )
        db.session.add(share)

    if share.status == 'pending':
        owner = db.session.get(User, task.user_id)
        create_notification(
            grantee.id,
            f"{owner.display_name} shared \"{task.title}\" with you "
            f"({access.PERMISSION_LABELS[permission_level]})",
            type='share_invite',
            task_id=task.id,
        )
    db.session.commit()
    logger.info('Task %s shared with user %s at %s', task.id, grantee.id, permission_level)
    return share


def list_shares(task_id, actor_id) -> List[SharedUser]:
    task = get_task(task_id)
    access.require_owner(task, actor_id)
    rows = (db.session.query(TaskShare, User)
            .join(User, User.id == TaskShare.shared_with_id)
            .filter(TaskShare.task_id == task.id)
            .order_by(TaskShare.id.asc())
            .all())
    return [SharedUser(
        id=user.id,
        email=user.email or '',
        name=user.name or '',
        permission_level=share.permission_level,
        status=share.status,
        share_id=share.id,
        permission_label=access.PERMISSION_LABELS[share.permission_level],
    ) for share, user in rows]


def update_permission(task_id, grantee_id, permission_level, actor_id):
    access.validate_level(permission_level)
    task = get_task(task_id)
    access.require_owner(task, actor_id)
    share = find_share(task.id, grantee_id)
    if share is None:
        raise NotFound('This task is not shared with that user')

    share.permission_level = permission_level
    share.updated_at = utcnow()
    db.session.commit()
    logger.info('Share %s on task %s now %s', share.id, task.id, permission_level)
    return share


def revoke(task_id, grantee_id, actor_id):
    """Remove a grantee's access. Returns False if there was nothing to remove."""
    task = get_task(task_id)
    access.require_owner(task, actor_id)
    share = find_share(task.id, grantee_id)
    if share is None:
        return False
    db.session.delete(share)
    db.session.commit()
    logger.info('Revoked user %s from task %s', grantee_id, task.id)
    return True


def find_shares_for_grantee(grantee_id, status=None) -> List[TaskShare]:
    query = TaskShare.query.filter_by(shared_with_id=grantee_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(TaskShare.created_at.asc(), TaskShare.id.asc()).all()


def find_shares_for_owner(owner_id) -> List[TaskShare]:
    return (TaskShare.query.filter_by(owner_id=owner_id)
            .order_by(TaskShare.created_at.asc(), TaskShare.id.asc())
            .all())


def share_to_dict(share):
    return {
        'id': share.id,
        'task_id': share.task_id,
        'owner_id': share.owner_id,
        'shared_with_id': share.shared_with_id,
        'permission_level': share.permission_level,
        'status': share.status,
        'created_at': isoformat(share.created_at),
        'updated_at': isoformat(share.updated_at),
    }
