#!/usr/bin/env python3
"""
Copy legacy local-storage data into the SQLite store.

The app does this automatically at startup; this script runs the same
migration on its own so it can be checked before launching the app.

Usage:
    python scripts/migrate_legacy_storage.py [--yes]

This script will:
1. Probe the SQLite store in REPOTA_DATA_DIR
2. Copy students and settings from the local JSON files if the database has no students yet
3. Leave the local JSON files untouched

Export a backup from the app before running this script!
"""

import logging
import os
import sys

# Add repo root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.db_conn import StorageConfig
from utils.migration import MigrationManager
from utils.storage import StorageBackend

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(), logging.FileHandler("migration.log")],
)
logger = logging.getLogger(__name__)


def run_migration(config: StorageConfig = None) -> bool:
    backend = StorageBackend(config or StorageConfig.from_env())
    try:
        backend.init()
        if not backend.is_database:
            logger.error("❌ Database storage is not available; nothing to migrate into")
            return False

        legacy_keys = backend.local_store.keys()
        logger.info(f"Legacy keys found: {legacy_keys or 'none'}")

        result = MigrationManager(backend).migrate()
        if not result.success:
            logger.error(f"❌ Migration failed: {result.error}")
            return False
        if result.already_migrated:
            logger.info(f"Database already holds {result.students_count} students; skipped")
        else:
            logger.info(
                f"✅ Migrated {result.students_count} students"
                f" (settings {'copied' if result.settings_migrated else 'not found'})"
            )
        return True
    finally:
        backend.close()


if __name__ == "__main__":
    print("🗄️  Repota legacy storage migration")
    print("=" * 60)

    if "--yes" not in sys.argv:
        confirmation = input("Do you want to continue? (yes/no): ").strip().lower()
        if confirmation not in ["yes", "y"]:
            print("Migration cancelled.")
            sys.exit(0)

    if run_migration():
        print("\n✅ Migration completed successfully!")
    else:
        print("\n❌ Migration failed! Check the logs for details.")
        sys.exit(1)
