from flask import Blueprint, abort, g, jsonify, request
from sqlalchemy.dialects.sqlite import insert

from .auth import login_required
from .helpers import MAX_ID, guarded_write, parse_id, read_limit, strict_int
from .models import db, Item, Review, ITEM_TYPES, next_free_id, now_ms

items_bp = Blueprint('items_api', __name__, url_prefix='/api/items')

# ids outside what SQLite can store never match, so they 404
ITEM_URL = f'/<item_type>/<int(min=1, max={MAX_ID}):item_id>'


def _check_type(item_type):
    if item_type not in ITEM_TYPES:
        abort(404, description='Unknown item type')


def _item_exists(item_type, item_id):
    return lambda: db.session.get(Item, {'type': item_type, 'id': item_id}) is not None


def _reviews_by_item(item_type, item_ids):
    """username -> review maps for every id, fetched in one query"""
    grouped = {}
    if not item_ids:
        return grouped
    rows = Review.query.filter(Review.item_type == item_type,
                               Review.item_id.in_(item_ids)).all()
    for r in rows:
        grouped.setdefault(r.item_id, {})[r.username] = r.to_dict()
    return grouped


@items_bp.route('/<item_type>', methods=['GET'])
@login_required
def list_items(item_type):
    _check_type(item_type)
    limit = read_limit('ITEMS_DEFAULT_LIMIT', 'ITEMS_MAX_LIMIT')
    items = (Item.query.filter_by(type=item_type)
             .order_by(Item.id.desc()).limit(limit).all())
    reviews = _reviews_by_item(item_type, [it.id for it in items])
    return jsonify({'data': [it.to_dict(reviews.get(it.id)) for it in items]})


@items_bp.route('/<item_type>', methods=['POST'])
@login_required
def create_item(item_type):
    _check_type(item_type)
    data = request.get_json(silent=True) or {}
    name = str(data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name is required'}), 400

    raw_id = data.get('id')
    item_id = None
    if raw_id not in (None, '', 0):
        item_id = parse_id(raw_id)
        if item_id is None:
            return jsonify({'error': 'id must be a positive whole number'}), 400
    if item_id:
        if db.session.get(Item, {'type': item_type, 'id': item_id}) is not None:
            return jsonify({'error': 'Item id already exists'}), 409
    else:
        item_id = next_free_id(Item, type=item_type)

    db.session.add(Item(type=item_type, id=item_id, name=name,
                        info=str(data.get('info') or ''),
                        author=g.user.username))
    db.session.commit()
    return jsonify({'success': True, 'id': item_id})


@items_bp.route(ITEM_URL, methods=['PUT'])
@login_required
def update_item(item_type, item_id):
    _check_type(item_type)
    data = request.get_json(silent=True) or {}
    name = str(data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name is required'}), 400

    query = Item.query.filter_by(type=item_type, id=item_id, author=g.user.username)
    error = guarded_write(query, _item_exists(item_type, item_id),
                          name=name, info=str(data.get('info') or ''), edited=now_ms())
    if error:
        db.session.rollback()
        return error
    db.session.commit()
    return jsonify({'success': True})


@items_bp.route(ITEM_URL, methods=['DELETE'])
@login_required
def delete_item(item_type, item_id):
    _check_type(item_type)
    query = Item.query.filter_by(type=item_type, id=item_id, author=g.user.username)
    error = guarded_write(query, _item_exists(item_type, item_id))
    if error:
        db.session.rollback()
        return error
    Review.query.filter_by(item_type=item_type, item_id=item_id) \
        .delete(synchronize_session=False)
    db.session.commit()
    return jsonify({'success': True})


@items_bp.route(ITEM_URL + '/reviews', methods=['PUT'])
@login_required
def upsert_review(item_type, item_id):
    """Create or overwrite the caller's review; the latest write wins."""
    _check_type(item_type)
    data = request.get_json(silent=True) or {}
    rating = strict_int(data.get('rating')) or 0
    text = str(data.get('text') or '').strip()
    if not 1 <= rating <= 5 or not text:
        return jsonify({'error': 'rating (1-5) and text are required'}), 400

    if db.session.get(Item, {'type': item_type, 'id': item_id}) is None:
        return jsonify({'error': 'Item not found'}), 404

    edited = now_ms()
    stmt = insert(Review.__table__).values(
        item_type=item_type, item_id=item_id, username=g.user.username,
        rating=rating, text=text, edited=edited,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['item_type', 'item_id', 'username'],
        set_={'rating': stmt.excluded.rating,
              'text': stmt.excluded.text,
              'edited': stmt.excluded.edited},
    )
    db.session.execute(stmt)
    db.session.commit()
    return jsonify({'success': True})


@items_bp.route(ITEM_URL + '/reviews', methods=['DELETE'])
@login_required
def delete_review(item_type, item_id):
    _check_type(item_type)
    Review.query.filter_by(item_type=item_type, item_id=item_id,
                           username=g.user.username).delete(synchronize_session=False)
    db.session.commit()
    return jsonify({'success': True})
