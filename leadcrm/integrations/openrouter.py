from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from leadcrm import config
from leadcrm.errors import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


class OpenRouterClient:
    """
    Thin chat-completions client for OpenRouter (Perplexity sonar models).

    One call -> one HTTP POST. No retries here: callers decide what a failure
    means (discovery turns it into an in-band error marker, research treats it
    as "no AI data").
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = config.OPENROUTER_API_KEY if api_key is None else api_key
        self.url = url or config.OPENROUTER_URL
        self._http = session or requests

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        model: str,
        timeout_s: float,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the first choice's message content. Raises ProviderTimeout / ProviderError."""
        if not self.api_key:
            raise ProviderError(0, "OPENROUTER_API_KEY is not set")

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": config.OPENROUTER_REFERER,
            "X-Title": config.OPENROUTER_TITLE,
        }

        try:
            resp = self._http.post(self.url, json=payload, headers=headers, timeout=timeout_s)
        except requests.Timeout as e:
            raise ProviderTimeout(timeout_s) from e
        except requests.RequestException as e:
            raise ProviderError(0, str(e)) from e

        if resp.status_code < 200 or resp.status_code >= 300:
            raise ProviderError(resp.status_code, (resp.text or "")[:500])

        try:
            data = resp.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("[openrouter] unexpected response shape from model=%s", model)
            return ""
