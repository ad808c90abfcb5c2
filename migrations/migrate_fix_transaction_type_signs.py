#!/usr/bin/env python3
"""Migration script to correct transaction type signs.

Databases seeded before the sign mapping was settled may mark types 2, 3 and 9
as income. This migration rewrites the transaction_types rows so that:
- types 1, 4, 5, 6, 7, 8 are Income with sign "+"
- types 2, 3, 9 are Expense with sign "-"

Balances are always computed from the lookup, so no transaction rows change.

Usage:
    python migrations/migrate_fix_transaction_type_signs.py [--db-path PATH]
"""

import sys
from pathlib import Path

# Add src to path so we can import cnabproc modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import inspect
from cnabproc.database.factories import create_sqlite_database
from cnabproc.database.models import fix_transaction_type_signs


def migrate_database(database_path: str | None = None) -> int:
    """Rewrite drifted transaction type rows.

    Args:
        database_path: Path to database file. If None, uses default location.

    Returns:
        Number of rows changed
    """
    db = create_sqlite_database(database_path=database_path)
    db.connect()

    try:
        session = db.session_factory()
        try:
            if "transaction_types" not in inspect(session.bind).get_table_names():
                raise RuntimeError(
                    "Table 'transaction_types' does not exist. Please initialize the database schema first."
                )

            print("Starting migration: correcting transaction type signs...")
            changed = fix_transaction_type_signs(session)
        finally:
            session.close()

        if changed == 0:
            print("Migration already applied: transaction type signs are correct")
        else:
            print(f"  Updated {changed} transaction type(s)")
            print("Migration completed successfully!")
        return changed
    finally:
        db.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(description="Correct transaction type signs")
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides CNABPROC_DB_PATH environment variable)",
    )
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
