"""
Lenient parsing of search-provider output.

The provider is asked for a raw JSON array but regularly wraps it in prose or
markdown fences. All of that leniency lives here: parse_candidates() always
returns a list (possibly empty) and never raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from leadcrm.errors import ParseError
from leadcrm.models import CANDIDATE_FIELDS, Candidate

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def _first_json_array(text: str) -> str:
    """
    Return the first balanced `[...]` substring.

    Brackets inside JSON strings are skipped so names like "Foo [GmbH]" do not
    end the array early.
    """
    start = text.find("[")
    if start < 0:
        raise ParseError("no '[' in provider response")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    raise ParseError("unbalanced '[' in provider response")


def _clean(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    s = str(value).strip()
    return s or None


def _to_candidate(item: Any) -> Optional[Candidate]:
    if not isinstance(item, dict):
        return None
    name = _clean(item.get("name"))
    if not name:
        return None

    fields = {k: _clean(item.get(k)) for k in CANDIDATE_FIELDS if k != "name"}
    if fields.get("email"):
        fields["email"] = fields["email"].lower()
    return Candidate(name=name, **fields)


def parse_candidates(raw: str) -> List[Candidate]:
    """Extract candidate records from a free-text provider answer. Never raises."""
    try:
        payload = json.loads(_first_json_array(_strip_fences(raw)))
        if not isinstance(payload, list):
            raise ParseError("top-level JSON is not an array")
    except (ParseError, ValueError) as e:
        logger.info("[discovery] provider response not parseable (%s); treating as empty", e)
        return []

    out: List[Candidate] = []
    for item in payload:
        cand = _to_candidate(item)
        if cand is not None:
            out.append(cand)
    return out
