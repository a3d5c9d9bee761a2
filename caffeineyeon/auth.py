from functools import wraps

from flask import Blueprint, current_app, g, jsonify, request, session
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash

from .models import db, User, Item, Review, Post

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def login_required(view):
    """Decorator for API handlers that require an authenticated user.

    Loads the session user into ``g.user``. A session pointing at a user that
    no longer exists is cleared and treated as logged out.
    """
    @wraps(view)
    def wrapped(*args, **kwargs):
        username = session.get('username')
        if not username:
            return jsonify({'error': 'Login required'}), 401
        user = db.session.get(User, username)
        if user is None:
            session.clear()
            return jsonify({'error': 'Login required'}), 401
        g.user = user
        return view(*args, **kwargs)
    return wrapped


def _login(user):
    session.clear()
    session['username'] = user.username


@auth_bp.route('/signup', methods=['POST'])
def signup():
    data = request.get_json(silent=True) or {}
    name = str(data.get('name') or '').strip()
    username = str(data.get('username') or '').strip()
    password = str(data.get('password') or '')
    if not name or not username or not password:
        return jsonify({'error': 'name, username and password are required'}), 400

    if db.session.get(User, username) is not None:
        return jsonify({'error': 'Username already exists'}), 409

    user = User(username=username, name=name,
                password_hash=generate_password_hash(password))
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # lost a race with a concurrent signup for the same name
        db.session.rollback()
        return jsonify({'error': 'Username already exists'}), 409
    _login(user)
    current_app.logger.info("New member signed up: %s", username)
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    username = str(data.get('username') or '').strip()
    password = str(data.get('password') or '')
    if not username or not password:
        return jsonify({'error': 'username and password are required'}), 400

    user = db.session.get(User, username)
    if user is None or not check_password_hash(user.password_hash, password):
        current_app.logger.warning("Failed login for %s", username)
        return jsonify({'error': 'Invalid username or password'}), 401

    _login(user)
    current_app.logger.info("Member logged in: %s", username)
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    username = session.get('username')
    session.clear()
    if username:
        current_app.logger.info("Member logged out: %s", username)
    return jsonify({'success': True})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': g.user.to_dict()})


def rename_user(old, new):
    """Move every reference from ``old`` to ``new``. Caller commits."""
    User.query.filter_by(username=old).update({'username': new}, synchronize_session=False)
    Post.query.filter_by(author=old).update({'author': new}, synchronize_session=False)
    Item.query.filter_by(author=old).update({'author': new}, synchronize_session=False)
    Review.query.filter_by(username=old).update({'username': new}, synchronize_session=False)


@auth_bp.route('/me', methods=['PUT'])
@login_required
def update_me():
    data = request.get_json(silent=True) or {}
    user = g.user
    username = old_username = user.username

    name = data.get('name')
    name = name.strip() if isinstance(name, str) else ''
    profile_image = data.get('profileImage')
    new_username = str(data.get('newUsername') or '').strip()
    current_password = str(data.get('currentPassword') or '')
    new_password = str(data.get('newPassword') or '')

    # validate everything before touching the row
    renaming = bool(new_username) and new_username != username
    if renaming and db.session.get(User, new_username) is not None:
        return jsonify({'error': 'Username already exists'}), 409
    if new_password and not (current_password
                             and check_password_hash(user.password_hash, current_password)):
        return jsonify({'error': 'Current password does not match'}), 400

    if name:
        user.name = name
    if isinstance(profile_image, str):
        user.profile_image = profile_image or None
    if new_password:
        user.password_hash = generate_password_hash(new_password)
    db.session.flush()

    if renaming:
        rename_user(username, new_username)
        username = new_username
    db.session.commit()

    if renaming:
        session['username'] = username
        current_app.logger.info("Renamed member %s to %s", old_username, username)

    updated = db.session.get(User, username)
    return jsonify({'success': True, 'user': updated.to_dict()})
