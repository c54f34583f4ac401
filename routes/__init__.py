from flask import Blueprint

tasks_bp = Blueprint('tasks', __name__)
shares_bp = Blueprint('shares', __name__)
chat_bp = Blueprint('chat', __name__)
api_bp = Blueprint('api', __name__)

from . import tasks, shares, chat, api
