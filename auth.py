import logging

from flask import Blueprint, render_template, redirect, url_for, request, flash
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import login_user, logout_user, login_required

from models import db, User
from utils import normalize_email

logger = logging.getLogger(__name__)

auth = Blueprint('auth', __name__)


@auth.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = normalize_email(request.form.get('email'))
        password = request.form.get('password') or ''
        user = User.query.filter_by(email=email).first()
        if user and check_password_hash(user.password_hash, password):
            login_user(user)
            return redirect(url_for('index'))
        logger.info('Failed login for %s', email)
        flash('Invalid email or password', 'error')
    return render_template('login.html')


@auth.route('/signup', methods=['GET', 'POST'])
def signup():
    if request.method == 'POST':
        email = normalize_email(request.form.get('email'))
        name = (request.form.get('name') or '').strip() or None
        password = request.form.get('password') or ''
        if not email or '@' not in email or not password:
            flash('Email and password are required', 'error')
        elif User.query.filter_by(email=email).first():
            flash('An account with that email already exists', 'error')
        else:
            new_user = User(email=email, name=name,
                            password_hash=generate_password_hash(password, method='scrypt'))
            db.session.add(new_user)
            db.session.commit()
            login_user(new_user)
            return redirect(url_for('index'))
    return render_template('signup.html')


@auth.route('/logout')
@login_required
def logout():
    logout_user()
    return redirect(url_for('auth.login'))
