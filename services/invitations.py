import logging

from errors import Forbidden, InvalidState, NotFound
from models import db, TaskShare, User, utcnow
from utils import create_notification

logger = logging.getLogger(__name__)

DECISIONS = ('accepted', 'rejected')


def respond(share_id, decision, actor_id):
    """Accept or reject a pending invitation as its grantee.

    ``pending`` is the only state with outgoing transitions; answering a
    share that is already accepted or rejected raises ``InvalidState`` and
    leaves it as it was.
    """
    if decision not in DECISIONS:
        raise ValueError(f'Invalid response: {decision}')

    share = db.session.get(TaskShare, share_id)
    if share is None:
        raise NotFound('Task share not found or not accessible')
    if share.shared_with_id != actor_id:
        raise Forbidden('Only the invited user can respond to this share')

    # Re-read under the grantee predicate with a row lock, whatever was loaded above
    share = (TaskShare.query
             .filter_by(id=share_id, shared_with_id=actor_id)
             .populate_existing()
             .with_for_update()
             .first())
    if share is None:
        raise NotFound('Task share not found or not accessible')
    if share.status != 'pending':
        status = share.status
        db.session.rollback()
        raise InvalidState(f'This invitation was already {status}')

    share.status = decision
    share.updated_at = utcnow()

    grantee = db.session.get(User, actor_id)
    verb = 'accepted' if decision == 'accepted' else 'declined'
    create_notification(
        share.owner_id,
        f'{grantee.display_name} {verb} your invitation to "{share.task.title}"',
        type='success' if decision == 'accepted' else 'warning',
        task_id=share.task_id,
    )
    db.session.commit()
    logger.info('Share %s %s by user %s', share.id, decision, actor_id)
    return share
