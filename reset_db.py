#!/usr/bin/env python3
"""Reset the opinion-conflict LanceDB database.

Usage:
    python reset_db.py              # Reset default database
    python reset_db.py --path ./custom/path  # Reset custom database
    python reset_db.py --yes        # Skip confirmation
"""

import argparse
import shutil
from pathlib import Path

from opinion_conflict.config import Settings
from opinion_conflict.lance_store import LanceConflictStore


def reset_database(db_path: str = "./data/lancedb", force: bool = False) -> bool:
    """Delete the LanceDB database directory.

    Args:
        db_path: Path to the database directory
        force: Skip confirmation prompt

    Returns:
        True if the database is gone afterwards
    """
    db_path = Path(db_path)

    if not db_path.exists():
        print(f"✅ Database does not exist at {db_path}")
        return True

    # Count rows before deletion
    try:
        counts = LanceConflictStore(db_path=db_path).table_counts()
        for table, count in counts.items():
            print(f"Found {count} rows in {table}")
    except Exception as e:
        print(f"Could not count rows (database may be corrupted): {e}")

    if not force:
        response = input(f"⚠️  Delete database at {db_path}? (yes/no): ")
        if response.lower() not in ("yes", "y"):
            print("❌ Cancelled")
            return False

    print(f"🗑️  Deleting database at {db_path}...")
    shutil.rmtree(db_path)

    if db_path.exists():
        print("❌ Warning: Database still exists")
        return False
    print("✅ Database deleted")
    return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Reset the opinion-conflict LanceDB database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                  # Reset with confirmation
  %(prog)s --yes            # Reset without confirmation
  %(prog)s --path ./custom  # Reset custom database location
        """,
    )
    parser.add_argument(
        "--path",
        default=Settings().db_path,
        help="Path to database directory (default: CONFLICT_DB_PATH or ./data/lancedb)",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )

    args = parser.parse_args()

    print("=" * 50)
    print("Opinion Conflict Database Reset")
    print("=" * 50)
    print()

    reset_database(db_path=args.path, force=args.yes)


if __name__ == "__main__":
    main()
