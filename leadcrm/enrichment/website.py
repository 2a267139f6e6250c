from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import requests
from bs4 import BeautifulSoup

from leadcrm import config
from leadcrm.enrichment.extractor import extract_emails, extract_phones

logger = logging.getLogger(__name__)

UA = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
}

# Impressum first: German sites are legally required to list contact details there.
CONTACT_PATHS = ["/impressum", "/kontakt", "/contact", "/about", "/ueber-uns", "/"]


@dataclass
class ScrapedSite:
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    description: Optional[str] = None
    pages_fetched: int = 0

    @property
    def has_data(self) -> bool:
        return bool(self.emails or self.phones or self.description)


def normalize_base_url(raw: str) -> str:
    url = (raw or "").strip()
    if not re.match(r"^https?://", url, re.I):
        url = "https://" + url
    return url.rstrip("/")


def _fetch(url: str, timeout_s: float) -> Optional[str]:
    try:
        r = requests.get(url, headers=UA, timeout=timeout_s, allow_redirects=True)
    except requests.RequestException as e:
        logger.debug("[website] fetch failed url=%s err=%r", url, e)
        return None
    if not r.ok:
        return None
    ctype = r.headers.get("content-type", "")
    if "text/html" not in ctype and "text/plain" not in ctype:
        return None
    return r.text or None


def _visible_text(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(" ", strip=True)


def extract_description(soup: BeautifulSoup) -> Optional[str]:
    """meta description / og:description, else the first substantial paragraph."""
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        content = (tag.get("content") or "").strip() if tag else ""
        if len(content) > 20:
            return content

    for p in soup.find_all("p"):
        text = p.get_text(" ", strip=True)
        if len(text) > 50:
            return text[:500]
    return None


def scrape_website(
    website: str,
    *,
    timeout_s: Optional[float] = None,
    delay_s: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ScrapedSite:
    """Walk the usual contact pages of `website` and collect emails, phones and a homepage blurb."""
    timeout_s = config.WEBSITE_FETCH_TIMEOUT_S if timeout_s is None else timeout_s
    delay_s = config.WEBSITE_PAGE_DELAY_S if delay_s is None else delay_s
    base = normalize_base_url(website)

    out = ScrapedSite()
    emails: List[str] = []
    phones: List[str] = []

    for i, path in enumerate(CONTACT_PATHS):
        if i > 0 and delay_s > 0:
            sleep(delay_s)

        page = _fetch(base + path, timeout_s)
        if not page:
            continue
        out.pages_fetched += 1

        soup = BeautifulSoup(page, "html.parser")
        if path == "/" and out.description is None:
            out.description = extract_description(soup)

        text = _visible_text(soup)
        emails.extend(extract_emails(text))
        phones.extend(extract_phones(text))

    out.emails = list(dict.fromkeys(emails))
    out.phones = list(dict.fromkeys(phones))
    logger.info(
        "[website] %s pages=%d emails=%d phones=%d desc=%s",
        base,
        out.pages_fetched,
        len(out.emails),
        len(out.phones),
        bool(out.description),
    )
    return out
