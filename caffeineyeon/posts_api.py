import json

from flask import Blueprint, g, jsonify, request

from .auth import login_required
from .helpers import MAX_ID, guarded_write, read_limit
from .models import db, Post, POST_CATEGORIES, next_free_id, now_ms

posts_bp = Blueprint('posts_api', __name__, url_prefix='/api/posts')

POST_URL = f'/<int(min=1, max={MAX_ID}):post_id>'

SORT_ORDERS = {
    'latest': Post.id.desc(),
    'oldest': Post.id.asc(),
}


def _read_post_payload():
    """Validated (fields, error) from the request body."""
    data = request.get_json(silent=True) or {}
    title = str(data.get('title') or '').strip()
    content = str(data.get('content') or '').strip()
    if not title or not content:
        return None, (jsonify({'error': 'title and content are required'}), 400)

    category = data.get('category') or 'free'
    if category not in POST_CATEGORIES:
        return None, (jsonify({'error': f'Unknown category: {category}'}), 400)

    images = data.get('images')
    images = [i for i in images if isinstance(i, str)] if isinstance(images, list) else []
    return {
        'title': title,
        'content': content,
        'images': json.dumps(images),
        'category': category,
    }, None


@posts_bp.route('', methods=['GET'])
@login_required
def list_posts():
    category = (request.args.get('category') or 'all').strip()
    sort = (request.args.get('sort') or 'latest').strip()
    if category != 'all' and category not in POST_CATEGORIES:
        return jsonify({'error': f'Unknown category: {category}'}), 400
    if sort not in SORT_ORDERS:
        return jsonify({'error': 'sort must be latest or oldest'}), 400

    query = Post.query
    if category != 'all':
        query = query.filter_by(category=category)
    limit = read_limit('POSTS_DEFAULT_LIMIT', 'POSTS_MAX_LIMIT')
    posts = query.order_by(SORT_ORDERS[sort]).limit(limit).all()
    return jsonify({'posts': [p.to_dict() for p in posts]})


@posts_bp.route('', methods=['POST'])
@login_required
def create_post():
    fields, error = _read_post_payload()
    if error:
        return error
    post_id = next_free_id(Post)
    db.session.add(Post(id=post_id, author=g.user.username, **fields))
    db.session.commit()
    return jsonify({'success': True, 'id': post_id})


@posts_bp.route(POST_URL, methods=['PUT'])
@login_required
def update_post(post_id):
    fields, error = _read_post_payload()
    if error:
        return error
    query = Post.query.filter_by(id=post_id, author=g.user.username)
    error = guarded_write(query, lambda: db.session.get(Post, post_id) is not None,
                          edited=now_ms(), **fields)
    if error:
        db.session.rollback()
        return error
    db.session.commit()
    return jsonify({'success': True})


@posts_bp.route(POST_URL, methods=['DELETE'])
@login_required
def delete_post(post_id):
    query = Post.query.filter_by(id=post_id, author=g.user.username)
    error = guarded_write(query, lambda: db.session.get(Post, post_id) is not None)
    if error:
        db.session.rollback()
        return error
    db.session.commit()
    return jsonify({'success': True})
