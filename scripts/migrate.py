#!/usr/bin/env python3
"""
Apply pending settings-database migrations.

Usage (from the project root): python -m scripts.migrate [path/to/serverpulse.db]
"""

import sys
from pathlib import Path

from src.serverpulse.persistence.migrate import MIGRATIONS_DIR, apply_migrations


def main() -> int:
    """
    Main entry point for migration script.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    project_root = Path(__file__).parent.parent
    db_path = Path(sys.argv[1]) if len(sys.argv) > 1 else project_root / "data" / "serverpulse.db"

    print(f"Database: {db_path}")
    print(f"Migrations: {MIGRATIONS_DIR}\n")

    try:
        applied = apply_migrations(db_path, MIGRATIONS_DIR)
    except Exception as e:
        print(f"\n✗ Migration failed: {e}", file=sys.stderr)
        return 1

    print(f"✓ Migrations completed successfully ({applied} applied)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
