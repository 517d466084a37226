from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from maintenance_api.core.settings import get_app_settings

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# PUBLIC_INTERFACE
def data_file(name: str, override: Optional[PathLike] = None) -> Path:
    """Resolve a workbook path: an explicit override, else IMPORT_DATA_DIR/name."""
    path = Path(override) if override else Path(get_app_settings().IMPORT_DATA_DIR) / name
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path


# PUBLIC_INTERFACE
def read_records(path: PathLike, sheet: Union[int, str] = 0) -> List[Dict[str, Any]]:
    """Read a sheet whose first row holds the headers; blank rows are dropped."""
    df = pd.read_excel(path, sheet_name=sheet, engine="openpyxl", dtype=object)
    df = df.dropna(how="all")
    df = df.astype(object).where(pd.notna(df), None)
    logger.info("Read %d rows from %s", len(df), Path(path).name)
    return df.to_dict(orient="records")


# PUBLIC_INTERFACE
def read_grid(path: PathLike, sheet: Union[int, str] = 0) -> List[List[Any]]:
    """Read a sheet as raw cells (no header row); empty cells are None."""
    df = pd.read_excel(path, sheet_name=sheet, header=None, engine="openpyxl", dtype=object)
    df = df.astype(object).where(pd.notna(df), None)
    return df.values.tolist()


# PUBLIC_INTERFACE
def pick(row: Dict[str, Any], candidates: Sequence[str]) -> Any:
    """First non-empty value among alternative header names (headers compared trimmed)."""
    stripped = {str(k).strip(): v for k, v in row.items()}
    for name in candidates:
        value = row.get(name)
        if value is None:
            value = stripped.get(name.strip())
        if value is not None and str(value).strip() != "":
            return value
    return None
