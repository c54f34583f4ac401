from errors import Conflict, NotFound
from models import User
from utils import normalize_email


def resolve(email):
    """Map an entered email address to the registered user."""
    email = normalize_email(email)
    if not email:
        raise NotFound('Enter an email address')

    matches = User.query.filter_by(email=email).limit(2).all()
    if not matches:
        raise NotFound(f'User with email {email} not found')
    if len(matches) > 1:
        raise Conflict(f'More than one account uses {email}')
    return matches[0]
