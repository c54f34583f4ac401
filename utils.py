from datetime import datetime

from flask import request

from models import db, Notification


def normalize_email(email):
    return (email or '').strip().lower()


def parse_datetime(value):
    """Parse the date formats the task forms send; returns None for blanks."""
    if not value:
        return None
    for fmt in ('%Y-%m-%dT%H:%M', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%d'):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f'Invalid date: {value}')


def create_notification(user_id, message, type='info', task_id=None):
    n = Notification(user_id=user_id, message=message, type=type, task_id=task_id)
    db.session.add(n)
    return n


def request_data():
    """JSON body when there is one, otherwise the submitted form."""
    return request.get_json(silent=True) or request.form
