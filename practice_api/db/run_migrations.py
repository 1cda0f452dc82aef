"""
Schema migrations for the practice database.

The schema is one Alembic revision (`0001_initial`) shipped inside the package,
so no alembic.ini is needed. The database URL comes from DATABASE_URL or the
POSTGRES_* settings.

Usage:
    python -m practice_api.db.run_migrations upgrade          # to head
    python -m practice_api.db.run_migrations downgrade        # to base, drops every table
    python -m practice_api.db.run_migrations current
    python -m practice_api.db.run_migrations history

The API calls `upgrade_to_head` at startup when RUN_MIGRATIONS_ON_STARTUP is true.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

from alembic import command
from alembic.config import Config

from practice_api.db.config import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
INITIAL_REVISION = "0001_initial"


def alembic_config() -> Config:
    """Alembic config pointing at the packaged migrations and the configured database."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Offline mode only; env.py opens its own async engine for online runs.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def upgrade_to_head() -> None:
    """Apply every pending revision. Blocking; env.py drives its own event loop."""
    logger.info("Upgrading practice schema to head")
    command.upgrade(alembic_config(), "head")


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> int:
    """Run one migration command and return a process exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: run_migrations {upgrade|downgrade|current|history} [revision]")
        return 1

    cmd, other = args[0], args[1:]
    if len(other) > 1:
        print(f"{cmd} takes at most one revision argument")
        return 2

    cfg = alembic_config()
    if cmd == "upgrade":
        command.upgrade(cfg, other[0] if other else "head")
    elif cmd == "downgrade":
        command.downgrade(cfg, other[0] if other else "base")
    elif cmd == "current":
        command.current(cfg)
    elif cmd == "history":
        command.history(cfg)
    else:
        print(f"Unsupported migration command: {cmd}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
