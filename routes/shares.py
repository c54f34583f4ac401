from flask import jsonify, render_template, request
from flask_login import login_required, current_user

from . import shares_bp
from services import invitations, sharing, views
from utils import request_data


def _shares_changed(extra=None, status=200):
    """Every share mutation answers with the actor's freshly computed views."""
    payload = views.refresh(current_user.id)
    if extra:
        payload.update(extra)
    response = jsonify(payload)
    response.status_code = status
    response.headers['HX-Trigger'] = 'sharesChanged'
    return response


@shares_bp.route('/tasks/<int:task_id>/shares', methods=['GET'])
@login_required
def list_shares(task_id):
    return jsonify([s.to_dict() for s in sharing.list_shares(task_id, current_user.id)])


@shares_bp.route('/tasks/<int:task_id>/shares', methods=['POST'])
@login_required
def create_share(task_id):
    data = request_data()
    share = sharing.create_share(
        task_id,
        data.get('email'),
        data.get('permission_level') or 'view',
        actor_id=current_user.id,
    )
    return _shares_changed({'share': sharing.share_to_dict(share)}, status=201)


@shares_bp.route('/tasks/<int:task_id>/shares/<int:user_id>/permission', methods=['POST'])
@login_required
def update_permission(task_id, user_id):
    share = sharing.update_permission(task_id, user_id, request_data().get('permission_level'),
                                      current_user.id)
    return _shares_changed({'share': sharing.share_to_dict(share)})


@shares_bp.route('/tasks/<int:task_id>/shares/<int:user_id>', methods=['DELETE'])
@login_required
def revoke(task_id, user_id):
    removed = sharing.revoke(task_id, user_id, current_user.id)
    return _shares_changed({'revoked': removed})


@shares_bp.route('/invitations', methods=['GET'])
@login_required
def pending_invitations():
    pending = views.pending_invitations(current_user.id)
    if request.headers.get('HX-Request'):
        return render_template('partials/pending_invites.html', invitations=pending,
                               pending_count=len(pending))
    return jsonify([i.to_dict() for i in pending])


@shares_bp.route('/invitations/count', methods=['GET'])
@login_required
def pending_count():
    return jsonify({'count': views.pending_count(current_user.id)})


@shares_bp.route('/invitations/<int:share_id>/accept', methods=['POST'])
@login_required
def accept(share_id):
    share = invitations.respond(share_id, 'accepted', current_user.id)
    return _shares_changed({'share': sharing.share_to_dict(share)})


@shares_bp.route('/invitations/<int:share_id>/reject', methods=['POST'])
@login_required
def reject(share_id):
    share = invitations.respond(share_id, 'rejected', current_user.id)
    return _shares_changed({'share': sharing.share_to_dict(share)})
