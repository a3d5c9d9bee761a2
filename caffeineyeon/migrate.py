"""Schema creation and the one-shot import of the legacy key-value blobs.

Before the normalized tables existed, the whole club state lived in four JSON
documents in the ``kv`` table:

    users         [{username, name, password, profileImage}, ...]
    data:beans    [{id, name, info, author, edited, reviews: {user: {...}}}, ...]
    data:recipes  same shape as data:beans
    data:posts    [{id, title, content, images, category, author, edited}, ...]

``migrate_legacy_kv`` copies them into the tables using insert-or-ignore on
each primary key, so it can be re-run safely. The ``kv`` rows are left in
place as a backup.
"""
import json

from flask import current_app
from sqlalchemy.dialects.sqlite import insert
from werkzeug.security import generate_password_hash

from .helpers import parse_id, strict_int
from .models import (
    db, User, Item, Review, Post, KvEntry, AppMeta,
    ITEM_TYPES, POST_CATEGORIES,
)

MIGRATED_FLAG = 'migrated_from_kv'
LEGACY_KEYS = {
    'users': 'users',
    'beans': 'data:beans',
    'recipes': 'data:recipes',
    'posts': 'data:posts',
}


def ensure_schema():
    db.create_all()


def is_migrated():
    return db.session.get(AppMeta, MIGRATED_FLAG) is not None


def clear_migrated_flag():
    AppMeta.query.filter_by(key=MIGRATED_FLAG).delete()
    db.session.commit()


def load_legacy_list(key):
    """Return the JSON list stored under ``key`` or [] if absent or unusable."""
    row = db.session.get(KvEntry, key)
    if row is None:
        return []
    try:
        value = json.loads(row.value)
    except ValueError:
        current_app.logger.warning("Legacy blob %r is not valid JSON; skipping", key)
        return []
    if not isinstance(value, list):
        current_app.logger.warning("Legacy blob %r is not a list; skipping", key)
        return []
    return value


def _insert_ignore(model, values):
    result = db.session.execute(
        insert(model.__table__).values(**values).on_conflict_do_nothing()
    )
    return result.rowcount or 0


def _migrate_users(entries):
    inserted = 0
    for u in entries:
        if not isinstance(u, dict):
            continue
        username = u.get('username')
        password = u.get('password')
        if not username or not password:
            continue
        inserted += _insert_ignore(User, {
            'username': str(username),
            'name': str(u.get('name') or username),
            'password_hash': generate_password_hash(str(password)),
            'profile_image': u.get('profileImage') or None,
        })
    return inserted


def _migrate_reviews(item_type, item_id, reviews):
    inserted = 0
    if not isinstance(reviews, dict):
        return inserted
    for username, rev in reviews.items():
        if not isinstance(rev, dict):
            continue
        rating = strict_int(rev.get('rating'))
        if rating is None or not 1 <= rating <= 5:
            continue
        inserted += _insert_ignore(Review, {
            'item_type': item_type,
            'item_id': item_id,
            'username': str(username),
            'rating': rating,
            'text': str(rev.get('text') or ''),
            'edited': parse_id(rev.get('edited')) or parse_id(rev.get('id')),
        })
    return inserted


def _migrate_items(item_type, entries):
    items = reviews = 0
    for it in entries:
        if not isinstance(it, dict):
            continue
        item_id = parse_id(it.get('id'))
        if item_id is None or not it.get('name'):
            continue
        items += _insert_ignore(Item, {
            'type': item_type,
            'id': item_id,
            'name': str(it['name']),
            'info': str(it.get('info') or ''),
            'author': str(it.get('author') or ''),
            'edited': parse_id(it.get('edited')),
        })
        reviews += _migrate_reviews(item_type, item_id, it.get('reviews'))
    return items, reviews


def _migrate_posts(entries):
    inserted = 0
    for p in entries:
        if not isinstance(p, dict):
            continue
        post_id = parse_id(p.get('id'))
        if post_id is None:
            continue
        images = p.get('images')
        images = [i for i in images if isinstance(i, str)] if isinstance(images, list) else []
        category = p.get('category')
        inserted += _insert_ignore(Post, {
            'id': post_id,
            'title': str(p.get('title') or ''),
            'content': str(p.get('content') or ''),
            'images': json.dumps(images),
            'category': category if category in POST_CATEGORIES else 'free',
            'author': str(p.get('author') or ''),
            'edited': parse_id(p.get('edited')),
        })
    return inserted


def migrate_legacy_kv():
    """
    Copy the legacy blobs into the normalized tables once.

    Returns a dict of inserted row counts, or None when the flag shows the
    migration already ran. Everything, including setting the flag, is one
    transaction.
    """
    if is_migrated():
        return None

    summary = {'users': 0, 'items': 0, 'reviews': 0, 'posts': 0}
    try:
        summary['users'] = _migrate_users(load_legacy_list(LEGACY_KEYS['users']))
        for item_type in ITEM_TYPES:
            items, reviews = _migrate_items(item_type, load_legacy_list(LEGACY_KEYS[item_type]))
            summary['items'] += items
            summary['reviews'] += reviews
        summary['posts'] = _migrate_posts(load_legacy_list(LEGACY_KEYS['posts']))
        db.session.add(AppMeta(key=MIGRATED_FLAG, value='1'))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Legacy kv migration done: %(users)d users, %(items)d items, "
        "%(reviews)d reviews, %(posts)d posts", summary)
    return summary
