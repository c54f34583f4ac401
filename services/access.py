"""Effective permission of an actor on a task.

Mirrors the store policies: a task is visible to its owner and to grantees
with an accepted share, mutable by the owner and accepted ``edit``/``admin``
grantees. Chatting with the assistant on a task is limited to the owner and
``admin`` grantees.
"""
from errors import Forbidden
from models import TaskShare, PERMISSION_LEVELS

OWNER = 'owner'
NONE = 'none'

PERMISSION_LABELS = {
    'view': 'View Only',
    'edit': 'Can Edit',
    'admin': 'Admin',
}


def validate_level(level):
    if level not in PERMISSION_LEVELS:
        raise ValueError(f'Invalid permission level: {level}')
    return level


def effective_permission(task, actor_id):
    if actor_id is None:
        return NONE
    if task.user_id == actor_id:
        return OWNER
    share = (TaskShare.query
             .filter_by(task_id=task.id, shared_with_id=actor_id, status='accepted')
             .first())
    return share.permission_level if share else NONE


def can_view(task, actor_id):
    return effective_permission(task, actor_id) != NONE


def can_mutate(task, actor_id):
    return effective_permission(task, actor_id) in (OWNER, 'edit', 'admin')


def can_chat(task, actor_id):
    return effective_permission(task, actor_id) in (OWNER, 'admin')


def require_view(task, actor_id):
    if not can_view(task, actor_id):
        raise Forbidden("Task not found or you don't have permission to view it")


def require_mutate(task, actor_id):
    level = effective_permission(task, actor_id)
    if level not in (OWNER, 'edit', 'admin'):
        raise Forbidden(f'Editing this task requires edit permission (yours: {level})')
    return level


def require_chat(task, actor_id):
    level = effective_permission(task, actor_id)
    if level not in (OWNER, 'admin'):
        raise Forbidden('Only task owners and users with admin permission can use the chat feature. '
                        f'Your current permission level: {level}')
    return level


def require_owner(task, actor_id):
    if task.user_id != actor_id:
        raise Forbidden('Only the task owner can do that')


def capabilities(task, actor_id):
    """UI affordances for the actor, computed from a single permission lookup."""
    level = effective_permission(task, actor_id)
    return {
        'permission': level,
        'can_view': level != NONE,
        'can_mutate': level in (OWNER, 'edit', 'admin'),
        'can_chat': level in (OWNER, 'admin'),
        'is_owner': level == OWNER,
    }
