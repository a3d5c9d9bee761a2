import logging
import os
from collections.abc import Mapping

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .auth import auth_bp
from .config import config as config_by_name
from .items_api import items_bp
from .migrate import clear_migrated_flag, ensure_schema, migrate_legacy_kv
from .models import db
from .posts_api import posts_bp
from .users_api import users_bp


def _resolve_database(app):
    if not app.config.get('DB_PATH'):
        app.config['DB_PATH'] = os.path.join(app.instance_path, 'caffeineyeon.sqlite')
    os.makedirs(os.path.dirname(os.path.abspath(app.config['DB_PATH'])), exist_ok=True)
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///' + os.path.abspath(app.config['DB_PATH'])


def _register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({'error': e.description}), e.code

    @app.errorhandler(Exception)
    def server_error(e):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {e}")
        return jsonify({'error': 'Server error'}), 500


def _format_summary(summary):
    return ', '.join(f'{k}: {v}' for k, v in summary.items())


def _register_commands(app):
    @app.cli.command('migrate-legacy')
    @click.option('--force', is_flag=True, help='Clear the boot flag and scan the kv blobs again.')
    def migrate_legacy_command(force):
        """Copy legacy key-value blobs into the tables."""
        ensure_schema()
        if force:
            clear_migrated_flag()
        summary = migrate_legacy_kv()
        boot_summary = app.extensions.get('caffeineyeon.boot_migration')
        if summary is not None:
            click.echo(_format_summary(summary))
        elif boot_summary is not None:
            click.echo(f'Migrated at startup: {_format_summary(boot_summary)}')
        else:
            click.echo('Already migrated (use --force to rescan).')


def create_app(config=None):
    """
    Build the app. ``config`` is a name from config.config ('development',
    'production', 'testing') or a mapping of overrides applied on top of the
    FLASK_CONFIG (default 'development') settings.
    """
    app = Flask(__name__, instance_relative_config=True)
    name = config if isinstance(config, str) else os.getenv('FLASK_CONFIG', 'default')
    app.config.from_object(config_by_name[name])
    if isinstance(config, Mapping):
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))
    _resolve_database(app)
    db.init_app(app)

    # ---------------- Blueprints ----------------
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(posts_bp)

    _register_error_handlers(app)
    _register_commands(app)

    # boot: schema + migration (kv rows are kept as a backup)
    with app.app_context():
        ensure_schema()
        if app.config['MIGRATE_ON_BOOT']:
            app.extensions['caffeineyeon.boot_migration'] = migrate_legacy_kv()
    app.logger.info("CaffeineYeon ready, database at %s", app.config['DB_PATH'])

    return app
