"""
Dedup gate for discovered candidates.

A candidate is a duplicate of an existing contact when either
- its profile URL matches (case-insensitive, trailing slash ignored), or
- its name|company pair matches (case-insensitive, whitespace collapsed).

The index is a snapshot taken once per discovery run. It is then only mutated
by the single consumer of that run, so no locking is needed. Two discovery runs
for the same segment running at the same time can still both insert the same
person; see DESIGN.md.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Set, Tuple

from leadcrm.models import Candidate

_WS_RE = re.compile(r"\s+")


def normalize_url(url: Optional[str]) -> str:
    return (url or "").strip().lower().rstrip("/")


def _norm_text(value: Optional[str]) -> str:
    return _WS_RE.sub(" ", (value or "").strip().lower())


def name_company_key(name: Optional[str], company: Optional[str]) -> str:
    return f"{_norm_text(name)}|{_norm_text(company)}"


class DedupIndex:
    def __init__(self, rows: Iterable[Tuple[Optional[str], Optional[str], Optional[str]]] = ()) -> None:
        self.urls: Set[str] = set()
        self.name_company: Set[str] = set()
        for url, name, company in rows:
            self._add(url, name, company)

    def _add(self, url: Optional[str], name: Optional[str], company: Optional[str]) -> None:
        u = normalize_url(url)
        if u:
            self.urls.add(u)
        if _norm_text(name):
            self.name_company.add(name_company_key(name, company))

    def is_duplicate(self, cand: Candidate) -> bool:
        u = normalize_url(cand.linkedin_url)
        if u and u in self.urls:
            return True
        return name_company_key(cand.name, cand.company) in self.name_company

    def add(self, cand: Candidate) -> None:
        self._add(cand.linkedin_url, cand.name, cand.company)

    def __len__(self) -> int:
        return len(self.name_company)
