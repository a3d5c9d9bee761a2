#!/usr/bin/env python3
"""Run the legacy kv -> tables migration against a database file.

Usage: python3 scripts/migrate_legacy.py /path/to/caffeineyeon.sqlite [--force]
"""
import sys
from pathlib import Path

from caffeineyeon import create_app
from caffeineyeon.migrate import clear_migrated_flag, migrate_legacy_kv


def main(argv):
    args = [a for a in argv if a != '--force']
    if len(args) != 1:
        print(__doc__.strip().splitlines()[-1])
        return 2
    db_path = Path(args[0]).resolve()
    if not db_path.exists():
        print(f"[skip] {db_path} not found")
        return 1

    app = create_app({'DB_PATH': str(db_path), 'MIGRATE_ON_BOOT': False})
    with app.app_context():
        if '--force' in argv:
            clear_migrated_flag()
        summary = migrate_legacy_kv()
    if summary is None:
        print(f"[skip] {db_path.name} already migrated (pass --force to rescan)")
        return 0
    for table, count in summary.items():
        print(f"[ok] {table}: {count} rows inserted")
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
