from flask import jsonify, render_template, request
from flask_login import login_required, current_user

from . import tasks_bp
from services import access, activity, tasks, views
from utils import request_data


def _task_payload(task):
    data = task.to_dict()
    data['steps'] = [s.to_dict() for s in task.steps]
    data.update(access.capabilities(task, current_user.id))
    return data


@tasks_bp.route('/tasks', methods=['GET'])
@login_required
def list_tasks():
    status = request.args.get('status')
    return jsonify([t.to_dict() for t in tasks.list_tasks(current_user.id, status)])


@tasks_bp.route('/tasks', methods=['POST'])
@login_required
def create_task():
    data = request_data()
    task = tasks.create_task(
        current_user.id,
        title=data.get('title'),
        description=data.get('description'),
        priority=data.get('priority') or None,
        category=data.get('category') or None,
        start_date=data.get('start_date') or None,
        due_date=data.get('due_date') or None,
    )
    return jsonify(_task_payload(task)), 201


@tasks_bp.route('/tasks/shared', methods=['GET'])
@login_required
def shared_tasks():
    shared = views.shared_with_me(current_user.id, request.args.get('status'))
    if request.headers.get('HX-Request'):
        return render_template('partials/shared_tasks.html', shared=shared)
    return jsonify([t.to_dict() for t in shared])


@tasks_bp.route('/tasks/<int:task_id>', methods=['GET'])
@login_required
def get_task(task_id):
    return jsonify(_task_payload(tasks.get_task(task_id, current_user.id)))


@tasks_bp.route('/tasks/<int:task_id>', methods=['PUT', 'POST'])
@login_required
def update_task(task_id):
    data = request_data()
    fields = {k: data.get(k) for k in tasks.EDITABLE_FIELDS if k in data}
    task = tasks.update_task(task_id, current_user.id, **fields)
    return jsonify(_task_payload(task))


@tasks_bp.route('/tasks/<int:task_id>/status', methods=['POST'])
@login_required
def change_status(task_id):
    task = tasks.change_status(task_id, current_user.id, request_data().get('status'))
    return jsonify(_task_payload(task))


@tasks_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
@login_required
def delete_task(task_id):
    tasks.delete_task(task_id, current_user.id)
    return jsonify({'status': 'success'})


@tasks_bp.route('/tasks/<int:task_id>/steps', methods=['POST'])
@login_required
def add_step(task_id):
    data = request_data()
    step = tasks.add_step(task_id, current_user.id, data.get('title'), data.get('description'))
    return jsonify(step.to_dict()), 201


@tasks_bp.route('/steps/<int:step_id>/toggle', methods=['POST'])
@login_required
def toggle_step(step_id):
    return jsonify(tasks.toggle_step(step_id, current_user.id).to_dict())


@tasks_bp.route('/steps/<int:step_id>', methods=['DELETE'])
@login_required
def delete_step(step_id):
    tasks.delete_step(step_id, current_user.id)
    return jsonify({'status': 'success'})


@tasks_bp.route('/tasks/<int:task_id>/activity', methods=['GET'])
@login_required
def task_activity(task_id):
    return jsonify([a.to_dict() for a in activity.list_activities(task_id, current_user.id)])
