from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from reward_hub.admin import Actor, seed_database
from reward_hub.config import load_settings
from reward_hub.db import Database
from reward_hub.logging_setup import setup_logging
from reward_hub.time_utils import now_local


def main() -> None:
    if len(sys.argv) > 2:
        raise SystemExit("Usage: python seed.py [catalog.yaml]")

    settings = load_settings()
    setup_logging(settings.log_level)
    catalog = Path(sys.argv[1]) if len(sys.argv) == 2 else settings.seed_catalog_path
    db = Database(settings.database_path)
    actor = Actor(uid="system", email=settings.super_admin_email or "system")
    tasks = seed_database(db, actor, now_local(settings.tz), catalog)
    print(f"Seeded {len(tasks)} tasks from {catalog}")


if __name__ == "__main__":
    main()
