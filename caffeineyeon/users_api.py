from flask import Blueprint, jsonify

from .auth import login_required
from .models import User

users_bp = Blueprint('users_api', __name__, url_prefix='/api')


@users_bp.route('/users')
@login_required
def list_users():
    """All members, without passwords"""
    users = User.query.order_by(User.name.asc()).all()
    return jsonify({'users': [u.to_dict() for u in users]})
