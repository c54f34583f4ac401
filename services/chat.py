import logging

from models import db, ChatMessage
from services import access, ai

logger = logging.getLogger(__name__)

ERROR_REPLY = 'Sorry, I encountered an error while generating a response. Please try again later.'


def get_history(task, actor_id):
    access.require_chat(task, actor_id)
    return (ChatMessage.query.filter_by(task_id=task.id)
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
            .all())


def send_message(task, actor_id, text):
    """Store the user's message and the assistant's reply.

    Nothing is returned for display: both messages reach the transcript
    through the change feed, like everyone else's.
    """
    access.require_chat(task, actor_id)
    text = (text or '').strip()
    if not text:
        raise ValueError('Message is empty')

    db.session.add(ChatMessage(task_id=task.id, user_id=actor_id, message=text, is_user=True))
    db.session.commit()

    try:
        reply = ai.generate(ai.build_task_prompt(task, text))
    except ai.AIUnavailable as e:
        logger.warning('Chat for task %s: %s', task.id, e)
        reply = str(e)
    except Exception as e:
        logger.exception('AI reply failed for task %s', task.id)
        reply = f'{ERROR_REPLY} (Error: {e})'

    db.session.add(ChatMessage(task_id=task.id, user_id=actor_id, message=reply, is_user=False))
    db.session.commit()


def clear_history(task, actor_id):
    access.require_chat(task, actor_id)
    # Each user clears their own turns and the replies to them
    for message in ChatMessage.query.filter_by(task_id=task.id, user_id=actor_id).all():
        db.session.delete(message)
    db.session.commit()
