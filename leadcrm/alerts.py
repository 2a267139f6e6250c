import json
import logging
from typing import Optional

import requests

from leadcrm import config

logger = logging.getLogger(__name__)


def send_discord_message(content: str, webhook_url: Optional[str] = None, username: str = "leadcrm") -> bool:
    """
    Post a plain-text/markdown line to the ops Discord webhook.

    Used by the scheduled flows for run summaries. Never raises: a missing
    webhook or a failed post is logged and reported as False.
    """
    url = webhook_url or config.DISCORD_ALERTS_URL
    if not url:
        logger.info("[discord] No webhook configured; skipping alert: %s", content[:200])
        return False

    payload = {"content": content[:2000], "username": username}
    try:
        resp = requests.post(
            url,
            data=json.dumps(payload),
            headers={"Content-Type": "application/json"},
            timeout=10,
        )
    except requests.RequestException:
        logger.exception("[discord] Exception while sending alert")
        return False

    if resp.status_code >= 400:
        logger.error("[discord] Failed to send alert: %s %s", resp.status_code, resp.text[:200])
        return False
    return True


__all__ = ["send_discord_message"]
