from __future__ import annotations

import html
import re
import urllib.parse
from typing import Iterable, List, Optional

EMAIL_RE = re.compile(r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b")

# German numbers: +49 ..., 0049 ..., 0xxx ..., optionally labelled Tel/Telefon/Fon/Phone/Mobil
PHONE_RE = re.compile(
    r"(?:(?:Tel(?:efon)?|Fon|Phone|Mobil)\s*[:.]\s*)?"
    r"(\+49[\s./\-]?[\d\s./\-]{6,15}|0049[\s./\-]?[\d\s./\-]{6,15}|0[1-9][\d\s./\-]{5,15})",
    re.I,
)

_OBFUSCATED = [
    (re.compile(r"\s*\[\s*at\s*\]\s*", re.I), "@"),
    (re.compile(r"\s*\(\s*at\s*\)\s*", re.I), "@"),
    (re.compile(r"\s*\[\s*dot\s*\]\s*", re.I), "."),
    (re.compile(r"\s*\(\s*dot\s*\)\s*", re.I), "."),
]

_BLOCKLIST_DOMAIN_SUBSTR = (
    "wixpress.com",
    "sentry.io",
    "example.com",
    "domain.com",
    "e-recht24.de",
    "iubenda.com",
)

_BAD_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".css", ".js")

GENERIC_EMAIL_PREFIXES = (
    "info@",
    "kontakt@",
    "contact@",
    "noreply@",
    "no-reply@",
    "office@",
    "mail@",
    "hello@",
    "hallo@",
    "support@",
    "service@",
    "team@",
    "webmaster@",
    "admin@",
    "postmaster@",
    "datenschutz@",
    "impressum@",
)

SOCIAL_DOMAINS = ("linkedin.com", "xing.com", "facebook.com", "twitter.com", "x.com", "instagram.com", "youtube.com")

MIN_PHONE_LEN = 8


def _deobfuscate(text: str) -> str:
    out = text
    for rx, repl in _OBFUSCATED:
        out = rx.sub(repl, out)
    return out


def _is_junk_email(e: str) -> bool:
    low = (e or "").strip().lower()
    if not low or "@" not in low:
        return True
    if any(low.endswith(suf) for suf in _BAD_SUFFIXES):
        return True
    dom = low.split("@", 1)[1]
    return any(bad in dom for bad in _BLOCKLIST_DOMAIN_SUBSTR)


def _clean_candidate(raw: str) -> str:
    s = urllib.parse.unquote((raw or "").strip())
    s = s.strip(" \t\r\n\"'<>[](){}.,;:")
    return s.lower().strip()


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for it in items:
        if it and it not in seen:
            seen.add(it)
            out.append(it)
    return out


def extract_emails(text: str) -> List[str]:
    """
    Emails in first-seen order, lowercased.
    - Unescapes HTML entities
    - Handles simple [at]/(dot) obfuscations
    - Filters template/vendor junk domains
    """
    if not text:
        return []
    text = _deobfuscate(html.unescape(text))

    found = []
    for m in EMAIL_RE.findall(text):
        cand = _clean_candidate(m)
        if cand and not _is_junk_email(cand):
            found.append(cand)
    return _dedupe(found)


def normalize_phone(raw: str) -> str:
    """Keep digits and '+' only."""
    return re.sub(r"[^\d+]", "", raw or "")


def extract_phones(text: str) -> List[str]:
    if not text:
        return []
    phones = (normalize_phone(m.group(1)) for m in PHONE_RE.finditer(text))
    return _dedupe(p for p in phones if len(p) >= MIN_PHONE_LEN)


def is_generic_email(email: str) -> bool:
    low = (email or "").lower()
    return any(low.startswith(p) for p in GENERIC_EMAIL_PREFIXES)


def pick_best_email(emails: List[str]) -> Optional[str]:
    """Personal address first; fall back to the first generic one."""
    if not emails:
        return None
    for e in emails:
        if not is_generic_email(e):
            return e
    return emails[0]


def pick_best_phone(phones: List[str]) -> Optional[str]:
    """Mobile numbers first (+491.., 01.., 00491..)."""
    if not phones:
        return None
    for p in phones:
        if p.startswith(("+491", "01", "00491")):
            return p
    return phones[0]


def is_social_url(url: str) -> bool:
    low = (url or "").lower()
    return any(d in low for d in SOCIAL_DOMAINS)
