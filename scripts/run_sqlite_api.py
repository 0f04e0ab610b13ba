"""Serve the Ledgerly API against the local SQLite database.

Firebase settings from .env are ignored so the server never reaches for
Firestore. Seed data first with ``python scripts/seed_demo_data.py``.
"""
import os
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Must happen before ledgerly.api.main loads .env and picks a backend
os.environ["USE_SQLITE"] = "true"
for var in ("FIRESTORE_EMULATOR_HOST", "GOOGLE_APPLICATION_CREDENTIALS", "FIREBASE_SERVICE_ACCOUNT"):
    os.environ.pop(var, None)

import uvicorn

from ledgerly.api.main import app
from ledgerly.database.db import DEFAULT_DB_PATH


def main() -> None:
    port = int(os.getenv("PORT", "8000"))
    print(f"Ledgerly API on http://localhost:{port} (SQLite: {os.getenv('LEDGERLY_DB_PATH', DEFAULT_DB_PATH)})")
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
