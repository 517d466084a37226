from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from maintenance_api.core.logging import configure_logging
from maintenance_api.db.session import get_session_maker
from maintenance_api.importers import IMPORTERS, ImportReport

logger = logging.getLogger("maintenance_api.importers")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m maintenance_api.importers",
        description="Import maintenance data from Excel workbooks",
    )
    parser.add_argument("name", choices=[*IMPORTERS, "all"], help="Importer to run")
    parser.add_argument("--dry-run", action="store_true", help="Parse and report without writing")
    parser.add_argument("--file", default=None, help="Workbook path (defaults to IMPORT_DATA_DIR/<standard name>)")
    return parser


async def run(names: List[str], file: Optional[str], dry_run: bool) -> List[ImportReport]:
    reports: List[ImportReport] = []
    async with get_session_maker()() as session:
        for name in names:
            reports.append(await IMPORTERS[name](session, file, dry_run))
    return reports


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns 1 when any row failed."""
    args = build_parser().parse_args(argv)
    if args.name == "all" and args.file:
        build_parser().error("--file cannot be combined with 'all'")
    configure_logging()
    names = list(IMPORTERS) if args.name == "all" else [args.name]
    try:
        reports = asyncio.run(run(names, args.file, args.dry_run))
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 2
    return 1 if any(r.errors for r in reports) else 0


if __name__ == "__main__":
    raise SystemExit(main())
