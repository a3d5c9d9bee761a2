import importlib.util
from pathlib import Path

import pytest

from caffeineyeon import create_app
from caffeineyeon.models import db, User

from conftest import write_legacy_db

SCRIPT = Path(__file__).resolve().parents[1] / 'scripts' / 'migrate_legacy.py'


@pytest.fixture
def legacy_path(tmp_path, monkeypatch):
    monkeypatch.setenv('FLASK_CONFIG', 'testing')
    return write_legacy_db(tmp_path / 'legacy.sqlite')


@pytest.fixture
def script():
    spec = importlib.util.spec_from_file_location('migrate_legacy_script', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_command_reports_what_startup_imported(legacy_path):
    app = create_app({'DB_PATH': str(legacy_path)})
    result = app.test_cli_runner().invoke(args=['migrate-legacy'])
    assert result.exit_code == 0
    assert result.output.strip() == 'Migrated at startup: users: 2, items: 2, reviews: 2, posts: 2'


def test_command_force_rescans(legacy_path):
    app = create_app({'DB_PATH': str(legacy_path)})
    with app.app_context():
        db.session.delete(db.session.get(User, 'joon'))
        db.session.commit()

    result = app.test_cli_runner().invoke(args=['migrate-legacy', '--force'])
    assert result.exit_code == 0
    assert result.output.strip() == 'users: 1, items: 0, reviews: 0, posts: 0'
    with app.app_context():
        assert db.session.get(User, 'joon') is not None


def test_command_on_already_migrated_database(legacy_path):
    create_app({'DB_PATH': str(legacy_path)})
    rebooted = create_app({'DB_PATH': str(legacy_path)})
    result = rebooted.test_cli_runner().invoke(args=['migrate-legacy'])
    assert result.exit_code == 0
    assert 'Already migrated' in result.output


def test_script_migrates_then_skips(script, legacy_path, capsys):
    assert script.main([str(legacy_path)]) == 0
    out = capsys.readouterr().out
    assert '[ok] users: 2 rows inserted' in out
    assert '[ok] posts: 2 rows inserted' in out

    assert script.main([str(legacy_path)]) == 0
    assert 'already migrated' in capsys.readouterr().out

    assert script.main([str(legacy_path), '--force']) == 0
    assert '[ok] users: 0 rows inserted' in capsys.readouterr().out


def test_script_argument_errors(script, tmp_path, capsys):
    assert script.main([]) == 2
    assert 'Usage' in capsys.readouterr().out
    assert script.main([str(tmp_path / 'missing.sqlite')]) == 1
    assert '[skip]' in capsys.readouterr().out
