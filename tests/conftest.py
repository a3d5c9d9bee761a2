"""Shared pytest fixtures.

Every test gets its own SQLite file under tmp_path so nothing leaks between
tests.
"""
import json
import sqlite3

import pytest

from caffeineyeon import create_app
from caffeineyeon.models import db


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / 'caffeineyeon.sqlite'


@pytest.fixture
def app(db_path, monkeypatch):
    monkeypatch.setenv('FLASK_CONFIG', 'testing')
    app = create_app({'DB_PATH': str(db_path)})
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


def signup(client, username, password='pw1234', name=None):
    resp = client.post('/api/auth/signup', json={
        'name': name or username.title(),
        'username': username,
        'password': password,
    })
    assert resp.status_code == 200, resp.get_json()
    return resp


@pytest.fixture
def member(client):
    """A logged-in client for user 'mina'."""
    signup(client, 'mina')
    return client


@pytest.fixture
def other_member(app):
    """A second, independently logged-in client for user 'joon'."""
    other = app.test_client()
    signup(other, 'joon')
    return other


LEGACY = {
    'users': [
        {'username': 'mina', 'name': 'Mina', 'password': 'pw1234', 'profileImage': None},
        {'username': 'joon', 'name': 'Joon', 'password': 'brew'},
        {'name': 'No Username', 'password': 'x'},
    ],
    'data:beans': [
        {'id': 1700000000001, 'name': 'Kenya AA', 'info': 'bright', 'author': 'mina', 'edited': None,
         'reviews': {
             'mina': {'rating': 5, 'text': 'love it', 'id': 1700000000500},
             'joon': {'rating': 3, 'text': 'fine', 'id': 1700000000600, 'edited': 1700000000700},
             'ghost': {'rating': 9, 'text': 'out of range'},
         }},
        {'name': 'missing id'},
    ],
    'data:recipes': [
        {'id': 1700000000002, 'name': 'V60 1:16', 'author': 'joon'},
    ],
    'data:posts': [
        {'id': 1700000000003, 'title': 'Welcome', 'content': 'Hello club', 'images': ['data:image/png;base64,AAA'],
         'category': 'notice', 'author': 'mina', 'edited': None},
        {'id': 1700000000004, 'title': 'Odd', 'content': 'category', 'category': 'weird', 'author': 'joon'},
    ],
}


def write_legacy_db(path, blobs=LEGACY):
    """A database file in the old layout: only the kv table."""
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
    conn.executemany("INSERT INTO kv(key, value) VALUES(?, ?)",
                     [(k, json.dumps(v)) for k, v in blobs.items()])
    conn.commit()
    conn.close()
    return path
