import logging

from errors import NotFound
from models import db, Task, TaskStep, PRIORITIES, CATEGORIES, TASK_STATUSES
from services import access
from utils import parse_datetime

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'priority', 'category', 'status', 'start_date', 'due_date')


def _validate(fields):
    if 'title' in fields and not (fields['title'] or '').strip():
        raise ValueError('Title is required')
    if fields.get('priority') is not None and fields['priority'] not in PRIORITIES:
        raise ValueError(f"Invalid priority: {fields['priority']}")
    if fields.get('category') is not None and fields['category'] not in CATEGORIES:
        raise ValueError(f"Invalid category: {fields['category']}")
    if fields.get('status') is not None and fields['status'] not in TASK_STATUSES:
        raise ValueError(f"Invalid status: {fields['status']}")
    for key in ('start_date', 'due_date'):
        if isinstance(fields.get(key), str):
            fields[key] = parse_datetime(fields[key])
    return fields


def get_task(task_id, actor_id):
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound(f'Task with ID {task_id} not found')
    access.require_view(task, actor_id)
    return task


def list_tasks(owner_id, status=None):
    query = Task.query.filter_by(user_id=owner_id)
    if status and status != 'all':
        query = query.filter_by(status=status)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def create_task(owner_id, **fields):
    fields = _validate({k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None})
    if 'title' not in fields:
        raise ValueError('Title is required')
    task = Task(user_id=owner_id, **fields)
    db.session.add(task)
    db.session.commit()
    return task


def update_task(task_id, actor_id, **fields):
    task = get_task(task_id, actor_id)
    access.require_mutate(task, actor_id)
    fields = _validate({k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
    for key, value in fields.items():
        setattr(task, key, value)
    db.session.commit()
    return task


def change_status(task_id, actor_id, status):
    if status not in TASK_STATUSES:
        raise ValueError(f'Invalid status: {status}')
    task = get_task(task_id, actor_id)
    access.require_mutate(task, actor_id)
    task.status = status
    db.session.commit()
    logger.info('Task %s moved to %s by user %s', task.id, status, actor_id)
    return task


def delete_task(task_id, actor_id):
    task = get_task(task_id, actor_id)
    access.require_owner(task, actor_id)
    db.session.delete(task)
    db.session.commit()


def _get_step(step_id, actor_id):
    step = db.session.get(TaskStep, step_id)
    if step is None:
        raise NotFound('Step not found')
    access.require_mutate(get_task(step.task_id, actor_id), actor_id)
    return step


def add_step(task_id, actor_id, title, description=None):
    if not (title or '').strip():
        raise ValueError('Title is required')
    task = get_task(task_id, actor_id)
    access.require_mutate(task, actor_id)
    step = TaskStep(task_id=task.id, user_id=actor_id, title=title.strip(), description=description,
                    order_index=len(task.steps))
    db.session.add(step)
    db.session.commit()
    return step


def toggle_step(step_id, actor_id):
    step = _get_step(step_id, actor_id)
    step.is_completed = not step.is_completed
    db.session.commit()
    return step


def delete_step(step_id, actor_id):
    step = _get_step(step_id, actor_id)
    db.session.delete(step)
    db.session.commit()
