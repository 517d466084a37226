from __future__ import annotations

from typing import Dict, Mapping, Optional
from uuid import UUID

from maintenance_api.importers.text import clean_arabic_text


# PUBLIC_INTERFACE
class BranchMatcher:
    """
    Resolve free-text branch names from spreadsheets to branch ids.

    Names are normalized with clean_arabic_text. An exact match wins; otherwise
    the first known branch whose name contains the input (or is contained in
    it) is taken, in the order the branches were supplied. Resolutions are
    cached per normalized input.
    """

    def __init__(self, branches: Mapping[str, UUID]):
        self._known: Dict[str, UUID] = {}
        for name, branch_id in branches.items():
            key = clean_arabic_text(name)
            if key and key not in self._known:
                self._known[key] = branch_id
        self._cache: Dict[str, Optional[UUID]] = {}

    def __len__(self) -> int:
        return len(self._known)

    def match(self, name: object) -> Optional[UUID]:
        key = clean_arabic_text(name)
        if not key:
            return None
        if key in self._cache:
            return self._cache[key]
        found = self._known.get(key)
        if found is None:
            for known, branch_id in self._known.items():
                if key in known or known in key:
                    found = branch_id
                    break
        self._cache[key] = found
        return found
