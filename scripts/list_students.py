"""List stored students with their computed averages and positions.
Run from the repo root:

    python scripts/list_students.py

This uses the same storage configuration as the app (env vars / hardcoded defaults).
"""

import sys
import traceback

# Ensure we can import utils from parent directory
sys.path.insert(0, ".")

from utils.db_conn import StorageConfig
from utils.gradebook import Gradebook
from utils.storage import StorageBackend

try:
    gradebook = Gradebook(StorageBackend(StorageConfig.from_env())).init()
except Exception:
    print("Could not open the gradebook storage:")
    traceback.print_exc()
    sys.exit(2)

try:
    rows = gradebook.processed_students()
    if not rows:
        print(f"No students found ({gradebook.backend.storage_type}).")
    else:
        print(f"Found {len(rows)} students ({gradebook.backend.storage_type}):\n")
        for s in rows:
            print(f"{s['classPosition']:>5}  {s['averageScore']:>6}  {s.get('name')}")
finally:
    gradebook.close()

print("\nDone.")
