from __future__ import annotations

import logging
from typing import List, Optional

from leadcrm import config
from leadcrm.discovery.parsing import parse_candidates
from leadcrm.integrations.openrouter import OpenRouterClient
from leadcrm.models import Candidate

logger = logging.getLogger(__name__)

SYSTEM_TEXT = """
You are a B2B lead research assistant with live web search.

Rules:
- Answer ONLY with a raw JSON array. No prose, no explanations, no markdown, no code fences.
- Each element is an object with the keys:
  "name", "company", "linkedin_url", "website", "email", "phone", "headline".
- "name" is the full name of a real person and is required.
- Use null for anything you could not verify. Never invent emails or phone numbers.
- "headline" is one line: role and company, as the person describes themselves.
""".strip()


def build_search_prompt(variation: str, count: int, exclude_names: List[str]) -> str:
    lines = [
        f"Find {count} decision makers matching this description:",
        variation,
        "",
        "Prefer owners, founders and managing directors of small and mid-sized businesses.",
    ]
    if exclude_names:
        lines.append("")
        lines.append("Do NOT include any of these people (already found):")
        lines.extend(f"- {n}" for n in exclude_names)
    lines.append("")
    lines.append(f"Return a JSON array with at most {count} objects.")
    return "\n".join(lines)


class SearchProvider:
    """
    search(prompt) -> list[Candidate]

    Raises ProviderTimeout / ProviderError for transport problems. A malformed
    answer is not an error: it parses to an empty list.
    """

    def __init__(
        self,
        client: Optional[OpenRouterClient] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.client = client or OpenRouterClient()
        self.model = model or config.DISCOVERY_MODEL
        self.timeout_s = config.DISCOVERY_TIMEOUT_S if timeout_s is None else timeout_s

    def search(self, prompt: str) -> List[Candidate]:
        content = self.client.chat(
            [
                {"role": "system", "content": SYSTEM_TEXT},
                {"role": "user", "content": prompt},
            ],
            model=self.model,
            timeout_s=self.timeout_s,
        )
        candidates = parse_candidates(content)
        logger.debug("[discovery] model=%s returned %d candidate(s)", self.model, len(candidates))
        return candidates
