import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class FocusFlowError(Exception):
    """Base class for errors that are shown to the user."""
    status_code = 400
    retryable = False
    default_message = 'Request failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(FocusFlowError):
    status_code = 404
    default_message = 'Not found'


class Forbidden(FocusFlowError):
    status_code = 403
    default_message = 'You do not have permission to do that'


class InvalidState(FocusFlowError):
    status_code = 409
    default_message = 'This item can no longer be changed'


class Conflict(FocusFlowError):
    status_code = 409
    default_message = 'Conflicting request'


class Transient(FocusFlowError):
    status_code = 503
    retryable = True
    default_message = 'Something went wrong. Try again.'


def error_response(error):
    return jsonify({'error': error.message, 'retry': error.retryable}), error.status_code


def register_error_handlers(app):
    from models import db

    @app.errorhandler(FocusFlowError)
    def handle_focusflow_error(error):
        if isinstance(error, Forbidden):
            logger.warning('Denied: %s', error.message)
        return error_response(error)

    @app.errorhandler(ValueError)
    def handle_value_error(error):
        return jsonify({'error': str(error), 'retry': False}), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(error):
        db.session.rollback()
        logger.exception('Store failure')
        return error_response(Transient())
