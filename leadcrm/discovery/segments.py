"""
Segment (vertical) -> ordered query variations for discovery.

Each variation is a short natural-language brief for the search model. They are
tried in order; earlier ones are the highest-yield (owners / founders), later
ones narrow by city to shake loose people the broad queries keep missing.

SEGMENTS_FILE (YAML) can add segments or replace built-in ones:

    segments:
      zahnaerzte:
        label: Zahnarztpraxen
        variations:
          - "Inhaber von Zahnarztpraxen in Deutschland"
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import yaml

from leadcrm import config
from leadcrm.errors import ConfigurationError, UnknownSegment

logger = logging.getLogger(__name__)

SEGMENTS: Dict[str, Dict[str, object]] = {
    "coaches_berater": {
        "label": "Coaches & Berater",
        "variations": [
            "Selbstständige Business Coaches in Deutschland, die Inhaber oder Gründer ihres Coaching-Unternehmens sind",
            "Freiberufliche Unternehmensberater in Deutschland mit eigener Beratung",
            "Executive Coaches in Deutschland, die Gründer oder Owner ihrer Firma sind",
            "Selbstständige Leadership Coaches in Deutschland",
            "Business Coaches in Deutschland mit eigener Website",
            "Executive Coaches für C-Level und Führungskräfte in Deutschland",
            "Premium- oder High-Ticket Business Coaches in Deutschland",
            "Solopreneure und Einzelunternehmer im Coaching oder in der Beratung in Deutschland",
            "Business Coaches mit eigenem Unternehmen in Berlin",
            "Unternehmensberater und Gründer einer Beratung in München",
            "Selbstständige Coaches in Hamburg",
        ],
    },
    "immobilienmakler": {
        "label": "Immobilienmakler",
        "variations": [
            "Immobilienmakler in Deutschland, die Inhaber oder Geschäftsführer eines Maklerbüros sind",
            "Gründer und Owner von Immobilienbüros in Deutschland",
            "Selbstständige Real-Estate-Berater in Deutschland",
            "Makler mit eigenem Büro in Deutschland",
        ],
    },
    "recruiting_headhunter": {
        "label": "Recruiting & Headhunter",
        "variations": [
            "Personalberater in Deutschland, die Inhaber, Partner oder Gründer einer Personalberatung sind",
            "Selbstständige Headhunter in Deutschland mit eigener Beratung",
            "Executive-Search-Gründer und Managing Partner in Deutschland",
            "Geschäftsführer und Owner von Recruiting-Agenturen in Deutschland",
            "Inhaber von Recruiting-Boutiquen in Deutschland",
            "Selbstständige IT- und Tech-Recruiter in Deutschland",
            "Personalberater mit eigener Firma in München",
            "Headhunter und Gründer in Berlin",
            "Executive-Search-Partner in Frankfurt",
        ],
    },
    "steuerberater_kanzlei": {
        "label": "Steuerberater & Kanzleien",
        "variations": [
            "Steuerberater in Deutschland, die Kanzleiinhaber oder Partner sind",
            "Gründer und Geschäftsführer von Steuerkanzleien in Deutschland",
            "Selbstständige Steuerberater mit eigener Kanzlei in Deutschland",
            "Digitale, moderne Steuerkanzleien in Deutschland und ihre Inhaber",
            "Steuerberater für Unternehmer und Mittelstand in Deutschland",
            "Wirtschaftsprüfer und Steuerberater, die Partner einer Kanzlei sind",
            "Kanzleiinhaber im Steuerrecht in München",
            "Partner von Steuerkanzleien in Hamburg",
            "Geschäftsführer von Steuerberatungen in Düsseldorf",
        ],
    },
    "marketing_agenturen": {
        "label": "Marketing-Agenturen",
        "variations": [
            "Inhaber, Gründer oder Geschäftsführer von Marketingagenturen in Deutschland",
            "Founder und Owner von Digitalagenturen in Deutschland",
            "CEOs und Managing Directors von Marketing-Agenturen in Deutschland",
            "Inhaber von Content- und Social-Media-Agenturen in Deutschland",
            "Inhaber von Performance-Marketing- und SEO-Agenturen in Deutschland",
            "Gründer von Kreativ- und Werbeagenturen in Deutschland",
            "Head of Operations oder COO in Agenturen in Deutschland",
            "Gründer von Marketingagenturen in Berlin",
            "Inhaber von Digitalagenturen in München",
            "Geschäftsführer von Agenturen in Hamburg",
        ],
    },
}


def _load_segments_file(path: str) -> Dict[str, Dict[str, object]]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"could not read SEGMENTS_FILE {path!r}: {e}") from e

    segments = raw.get("segments") if isinstance(raw, dict) else None
    if not isinstance(segments, dict):
        raise ConfigurationError(f"SEGMENTS_FILE {path!r} must contain a 'segments' mapping")

    out: Dict[str, Dict[str, object]] = {}
    for seg_id, spec in segments.items():
        variations = spec.get("variations") if isinstance(spec, dict) else None
        valid = isinstance(variations, list) and variations and all(isinstance(v, str) and v.strip() for v in variations)
        if not valid:
            raise ConfigurationError(f"segment {seg_id!r} needs a non-empty list of string variations")
        out[str(seg_id)] = {
            "label": str(spec.get("label") or seg_id),
            "variations": [v.strip() for v in variations],
        }
    return out


class SegmentCatalog:
    """Lookup of configured segments. Built-ins first, SEGMENTS_FILE entries on top."""

    def __init__(self, segments: Optional[Dict[str, Dict[str, object]]] = None, path: Optional[str] = None) -> None:
        table = dict(SEGMENTS if segments is None else segments)
        if path:
            overrides = _load_segments_file(path)
            table.update(overrides)
            logger.info("[segments] loaded %d segment(s) from %s", len(overrides), path)
        self._table = table

    @classmethod
    def from_config(cls) -> "SegmentCatalog":
        return cls(path=config.SEGMENTS_FILE or None)

    def label(self, segment: str) -> str:
        return str(self._table.get(segment, {}).get("label") or segment)

    def variations(self, segment: Optional[str]) -> List[str]:
        spec = self._table.get(segment or "")
        variations = spec.get("variations") if spec else None
        if not variations:
            raise UnknownSegment(segment)
        return list(variations)  # type: ignore[arg-type]
