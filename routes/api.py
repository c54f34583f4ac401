from flask import jsonify, render_template, request
from flask_login import login_required, current_user

from . import api_bp
from models import db, Notification, isoformat
from services import access, tasks
from services.realtime import FeedGap, feed

# stream name -> (table, filter builder)
FEED_STREAMS = {
    'shares': ('task_share', lambda: {'shared_with_id': current_user.id}),
    'tasks': ('task', lambda: {'user_id': current_user.id}),
    'chat': ('task_chat', None),
}


@api_bp.route('/notifications', methods=['GET'])
@login_required
def get_notifications():
    notifications = (Notification.query.filter_by(user_id=current_user.id, is_read=False)
                     .order_by(Notification.created_at.desc()).all())

    if request.headers.get('HX-Request'):
        return render_template('partials/notification_list.html', notifications=notifications)

    return jsonify([{
        'id': n.id,
        'message': n.message,
        'type': n.type,
        'task_id': n.task_id,
        'created_at': isoformat(n.created_at)
    } for n in notifications])


@api_bp.route('/notifications/mark_read/<int:notif_id>', methods=['POST'])
@login_required
def mark_notification_read(notif_id):
    notif = db.session.get(Notification, notif_id)
    if notif and notif.user_id == current_user.id:
        notif.is_read = True
        db.session.commit()
    return jsonify({'status': 'success'})


@api_bp.route('/notifications/read', methods=['POST'])
@login_required
def mark_notifications_read():
    Notification.query.filter_by(user_id=current_user.id, is_read=False).update({'is_read': True})
    db.session.commit()
    return jsonify({'status': 'success'})


@api_bp.route('/feed/<stream>', methods=['GET'])
@login_required
def poll_feed(stream):
    """Events on one stream after ``cursor``; without a cursor, just the head to start from."""
    if stream not in FEED_STREAMS:
        return jsonify({'error': f'Unknown stream: {stream}', 'retry': False}), 404
    table, build_filters = FEED_STREAMS[stream]

    if stream == 'chat':
        task_id = request.args.get('task_id', type=int)
        if task_id is None:
            raise ValueError('task_id is required for the chat stream')
        task = tasks.get_task(task_id, current_user.id)
        access.require_chat(task, current_user.id)
        filters = {'task_id': task.id}
    else:
        filters = build_filters()

    cursor = request.args.get('cursor', type=int)
    if cursor is None:
        return jsonify({'events': [], 'cursor': feed.head()})

    try:
        events, next_cursor = feed.read(cursor, table, filters)
    except FeedGap:
        return jsonify({'resync': True, 'cursor': feed.head()})
    return jsonify({'events': [e.to_dict() for e in events], 'cursor': next_cursor})
