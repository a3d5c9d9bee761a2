import json
import time

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ITEM_TYPES = ('beans', 'recipes')
POST_CATEGORIES = ('notice', 'suggestion', 'ledger', 'free')


def now_ms():
    return int(time.time() * 1000)


def parse_images(raw):
    """Decode the JSON image list stored on a post; anything malformed is empty."""
    try:
        value = json.loads(raw) if raw else []
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


class User(db.Model):
    __tablename__ = 'users'

    username = db.Column(db.String(80), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    profile_image = db.Column(db.Text)

    def to_dict(self):
        return {
            'username': self.username,
            'name': self.name,
            'profileImage': self.profile_image,
        }


class Item(db.Model):
    """A bean or recipe catalog entry."""
    __tablename__ = 'items'

    type = db.Column(db.String(16), primary_key=True)
    id = db.Column(db.BigInteger, primary_key=True, autoincrement=False)
    name = db.Column(db.Text, nullable=False)
    info = db.Column(db.Text, nullable=False, default='')
    author = db.Column(db.String(80), nullable=False, index=True)
    edited = db.Column(db.BigInteger)

    def to_dict(self, reviews=None):
        return {
            'id': self.id,
            'name': self.name,
            'info': self.info,
            'author': self.author,
            'edited': self.edited,
            'reviews': reviews or {},
        }


class Review(db.Model):
    __tablename__ = 'reviews'

    item_type = db.Column(db.String(16), primary_key=True)
    item_id = db.Column(db.BigInteger, primary_key=True, autoincrement=False)
    username = db.Column(db.String(80), primary_key=True)
    rating = db.Column(db.Integer, nullable=False)
    text = db.Column(db.Text, nullable=False)
    edited = db.Column(db.BigInteger)

    def to_dict(self):
        # the client keys reviews by their last edit time
        return {
            'id': self.edited or now_ms(),
            'edited': self.edited,
            'rating': self.rating,
            'text': self.text,
        }


class Post(db.Model):
    __tablename__ = 'posts'

    id = db.Column(db.BigInteger, primary_key=True, autoincrement=False)
    title = db.Column(db.Text, nullable=False)
    content = db.Column(db.Text, nullable=False)
    images = db.Column(db.Text, nullable=False, default='[]')
    category = db.Column(db.String(16), nullable=False, default='free', index=True)
    author = db.Column(db.String(80), nullable=False, index=True)
    edited = db.Column(db.BigInteger)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'images': parse_images(self.images),
            'category': self.category,
            'author': self.author,
            'edited': self.edited,
        }


class KvEntry(db.Model):
    """Legacy JSON blob storage, kept as a backup after migration."""
    __tablename__ = 'kv'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)


class AppMeta(db.Model):
    __tablename__ = 'app_meta'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)


def next_free_id(model, **scope):
    """Current time in ms, bumped past any id already taken in ``scope``."""
    candidate = now_ms()
    while db.session.get(model, _pk(model, candidate, scope)) is not None:
        candidate += 1
    return candidate


def _pk(model, ident, scope):
    if model is Item:
        return {'type': scope['type'], 'id': ident}
    return ident
