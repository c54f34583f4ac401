import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv
from flask import Flask, render_template
from flask_login import login_required, current_user

from errors import register_error_handlers
from extensions import csrf, login_manager, migrate
from models import db, User

load_dotenv()

LOG_DIR = os.environ.get('LOG_DIR')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# Loggers of our own modules; everything logs via logging.getLogger(__name__)
APP_LOGGERS = ('services', 'routes', 'errors', 'auth', 'commands')


def _setup_logging(app_instance):
    """Console, plus a rotating file when LOG_DIR is set."""
    formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    handlers = [console_handler]

    if LOG_DIR:
        os.makedirs(LOG_DIR, exist_ok=True)
        # 10 MB per file, keep 5 backups
        file_handler = RotatingFileHandler(
            os.path.join(LOG_DIR, 'focusflow.log'),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8',
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for name in APP_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)

    app_instance.logger.handlers.clear()
    for handler in handlers:
        app_instance.logger.addHandler(handler)
    app_instance.logger.setLevel(level)


app = Flask(__name__)

app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev_key_change_in_prod')
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('SQLALCHEMY_DATABASE_URI', 'sqlite:///db.sqlite3')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['GOOGLE_API_KEY'] = os.environ.get('GOOGLE_API_KEY')
app.config['GEMINI_MODEL'] = os.environ.get('GEMINI_MODEL', 'gemini-1.5-flash')
app.config['AI_TIMEOUT_SECONDS'] = int(os.environ.get('AI_TIMEOUT_SECONDS', 30))
app.config['FEED_RETENTION'] = int(os.environ.get('FEED_RETENTION', 1000))
app.config['FEED_BATCH_SIZE'] = int(os.environ.get('FEED_BATCH_SIZE', 100))

_setup_logging(app)

db.init_app(app)
migrate.init_app(app, db)
csrf.init_app(app)
login_manager.init_app(app)

register_error_handlers(app)

# Session hooks for the activity trail and the change feed install on import
from services import activity  # noqa: E402,F401
from services.realtime import feed  # noqa: E402

feed.batch_size = app.config['FEED_BATCH_SIZE']


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


from auth import auth  # noqa: E402
from routes import tasks_bp, shares_bp, chat_bp, api_bp  # noqa: E402
from commands import register_commands  # noqa: E402
from services import tasks, views  # noqa: E402

app.register_blueprint(auth)
app.register_blueprint(tasks_bp)
app.register_blueprint(shares_bp)
app.register_blueprint(chat_bp)
app.register_blueprint(api_bp, url_prefix='/api')

register_commands(app)


@app.route('/')
@login_required
def index():
    return render_template(
        'index.html',
        tasks=tasks.list_tasks(current_user.id),
        shared=views.shared_with_me(current_user.id),
        pending_count=views.pending_count(current_user.id),
    )


app.logger.info('FocusFlow starting, db=%s', app.config['SQLALCHEMY_DATABASE_URI'])

if __name__ == '__main__':
    app.run(debug=True)
