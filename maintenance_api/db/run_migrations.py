"""
Programmatic Alembic migration runner.

Runs migrations without an alembic.ini by pointing Alembic at the migrations
directory of this package. Used at app startup (RUN_MIGRATIONS_ON_STARTUP) and
from the command line:

    python -m maintenance_api.db.run_migrations upgrade head
    python -m maintenance_api.db.run_migrations downgrade -1
    python -m maintenance_api.db.run_migrations current
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from maintenance_api.db.config import get_settings

logger = logging.getLogger(__name__)

_DEFAULT_ARGS: Dict[str, List[str]] = {"upgrade": ["head"], "downgrade": ["-1"], "stamp": ["head"]}

_COMMANDS: Dict[str, Callable[..., None]] = {
    "upgrade": command.upgrade,
    "downgrade": command.downgrade,
    "stamp": command.stamp,
    "history": command.history,
    "current": command.current,
    "heads": command.heads,
    "show": command.show,
}


# PUBLIC_INTERFACE
def build_config() -> Config:
    """Alembic Config with script location and the sync database URL set."""
    cfg = Config()
    cfg.set_main_option("script_location", str(Path(__file__).resolve().parent / "migrations"))
    # env.py uses the async URL for online runs; this one serves offline mode.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """Run an Alembic command, e.g. main(["upgrade", "head"])."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        logger.error("No Alembic arguments provided. Example: upgrade head")
        sys.exit(1)

    cmd, other = args[0], args[1:]
    handler = _COMMANDS.get(cmd)
    if handler is None:
        logger.error("Unsupported Alembic command: %s", cmd)
        sys.exit(2)
    if cmd == "show" and not other:
        logger.error("Usage: show <revision>")
        sys.exit(2)

    handler(build_config(), *(other or _DEFAULT_ARGS.get(cmd, [])))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
