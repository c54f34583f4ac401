from flask import jsonify, render_template, request
from flask_login import login_required, current_user

from . import chat_bp
from services import chat, tasks
from utils import request_data


@chat_bp.route('/tasks/<int:task_id>/chat', methods=['GET'])
@login_required
def history(task_id):
    task = tasks.get_task(task_id, current_user.id)
    messages = chat.get_history(task, current_user.id)
    if request.headers.get('HX-Request'):
        return render_template('partials/chat_messages.html', messages=messages)
    return jsonify([m.to_dict() for m in messages])


@chat_bp.route('/tasks/<int:task_id>/chat', methods=['POST'])
@login_required
def send(task_id):
    task = tasks.get_task(task_id, current_user.id)
    chat.send_message(task, current_user.id, request_data().get('message'))
    # Both messages arrive through the chat feed
    return jsonify({'status': 'sent'}), 202


@chat_bp.route('/tasks/<int:task_id>/chat', methods=['DELETE'])
@login_required
def clear(task_id):
    task = tasks.get_task(task_id, current_user.id)
    chat.clear_history(task, current_user.id)
    return jsonify({'status': 'success'})
