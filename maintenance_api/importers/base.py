from __future__ import annotations

import logging
from typing import List

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RowError(BaseModel):
    row: int = Field(..., description="Spreadsheet row number")
    message: str


# PUBLIC_INTERFACE
class ImportReport(BaseModel):
    """Outcome of one importer run."""
    name: str
    processed: int = 0
    written: int = 0
    skipped: int = 0
    errors: List[RowError] = Field(default_factory=list)
    dry_run: bool = False

    def fail(self, row: int, message: str) -> None:
        self.errors.append(RowError(row=row, message=message))
        logger.warning("%s row %d: %s", self.name, row, message)

    def log_summary(self) -> "ImportReport":
        logger.info(
            "%s import%s: processed=%d written=%d skipped=%d errors=%d",
            self.name,
            " (dry run)" if self.dry_run else "",
            self.processed,
            self.written,
            self.skipped,
            len(self.errors),
        )
        return self
