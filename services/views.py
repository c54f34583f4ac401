"""Read-side projections over the share ledger.

Mutations never patch these in place: callers re-run ``refresh`` after
every share, respond, re-permission or revoke.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import aliased

from models import db, ChatMessage, Task, TaskShare, User, isoformat
from services import access
from services.realtime import Reconciler, feed


@dataclass
class PendingInvitation:
    id: int
    task_id: int
    owner_id: int
    shared_with_id: int
    permission_level: str
    permission_label: str
    status: str
    created_at: Optional[str]
    updated_at: Optional[str]
    task_title: str = ''
    task_description: str = ''
    owner_email: str = ''
    owner_name: str = ''

    def to_dict(self):
        return dict(self.__dict__)


@dataclass
class SharedTask:
    task: Dict[str, Any]
    share_id: int
    permission_level: str
    shared_by: str
    owner_name: str = ''
    is_shared: bool = True
    capabilities: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self):
        data = dict(self.task)
        data.update({
            'is_shared': self.is_shared,
            'shared_by': self.shared_by,
            'owner_name': self.owner_name,
            'share_id': self.share_id,
            'permission_level': self.permission_level,
        })
        data.update(self.capabilities)
        return data


def _pending_query(user_id):
    Owner = aliased(User)
    return (db.session.query(TaskShare, Task, Owner)
            .join(Task, Task.id == TaskShare.task_id)
            .outerjoin(Owner, Owner.id == TaskShare.owner_id)
            .filter(TaskShare.shared_with_id == user_id, TaskShare.status == 'pending'))


def _to_invitation(share, task, owner):
    return PendingInvitation(
        id=share.id,
        task_id=share.task_id,
        owner_id=share.owner_id,
        shared_with_id=share.shared_with_id,
        permission_level=share.permission_level,
        permission_label=access.PERMISSION_LABELS[share.permission_level],
        status=share.status,
        created_at=isoformat(share.created_at),
        updated_at=isoformat(share.updated_at),
        task_title=task.title or '',
        task_description=task.description or '',
        owner_email=owner.email if owner else '',
        owner_name=(owner.name or '') if owner else '',
    )


def pending_invitations(user_id) -> List[PendingInvitation]:
    rows = _pending_query(user_id).order_by(TaskShare.created_at.asc(), TaskShare.id.asc()).all()
    return [_to_invitation(*row) for row in rows]


def pending_invitation(user_id, share_id) -> Optional[PendingInvitation]:
    row = _pending_query(user_id).filter(TaskShare.id == share_id).first()
    return _to_invitation(*row) if row else None


def pending_count(user_id):
    return TaskShare.query.filter_by(shared_with_id=user_id, status='pending').count()


def shared_with_me(user_id, status_filter=None) -> List[SharedTask]:
    Owner = aliased(User)
    query = (db.session.query(TaskShare, Task, Owner)
             .join(Task, Task.id == TaskShare.task_id)
             .outerjoin(Owner, Owner.id == TaskShare.owner_id)
             .filter(TaskShare.shared_with_id == user_id, TaskShare.status == 'accepted'))
    if status_filter and status_filter != 'all':
        query = query.filter(Task.status == status_filter)
    rows = query.order_by(Task.created_at.desc(), Task.id.desc()).all()

    results = []
    for share, task, owner in rows:
        level = share.permission_level
        results.append(SharedTask(
            task=task.to_dict(),
            share_id=share.id,
            permission_level=level,
            shared_by=(owner.email if owner and owner.email else str(share.owner_id)),
            owner_name=(owner.name or '') if owner else '',
            capabilities={
                'can_mutate': level in ('edit', 'admin'),
                'can_chat': level == 'admin',
            },
        ))
    return results


def refresh(user_id):
    """Every projection a share mutation can affect, recomputed from scratch."""
    return {
        'pending': [i.to_dict() for i in pending_invitations(user_id)],
        'pending_count': pending_count(user_id),
        'shared_with_me': [t.to_dict() for t in shared_with_me(user_id)],
    }


def watch_pending_invitations(user_id, on_change=None):
    def transform(row):
        if row.get('status') != 'pending':
            return None
        invitation = pending_invitation(user_id, row['id'])
        return invitation.to_dict() if invitation else None

    subscription = feed.subscribe('task_share', filters={'shared_with_id': user_id})
    reconciler = Reconciler(
        loader=lambda: [i.to_dict() for i in pending_invitations(user_id)],
        subscription=subscription,
        transform=transform,
        on_change=on_change,
    )
    return reconciler.resync()


def chat_history(task_id):
    return [m.to_dict() for m in
            ChatMessage.query.filter_by(task_id=task_id)
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()]


def watch_chat(task, user_id, on_change=None):
    access.require_chat(task, user_id)
    subscription = feed.subscribe('task_chat', filters={'task_id': task.id}, operations=('INSERT', 'DELETE'))
    reconciler = Reconciler(
        loader=lambda: chat_history(task.id),
        subscription=subscription,
        content_fields=('message', 'is_user'),
        on_change=on_change,
    )
    return reconciler.resync()
