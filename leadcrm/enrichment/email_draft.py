from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from leadcrm import config
from leadcrm.models import EmailDraftResult

logger = logging.getLogger(__name__)


# ==============================================================================
# System text
# ==============================================================================

SYSTEM_TEXT: str = f"""
Du schreibst Outreach-E-Mails für {config.OUTREACH_COMPANY}.

{config.OUTREACH_COMPANY} baut Arbeitsabläufe von Selbstständigen und kleinen Teams so um,
dass sie ohne manuelles Zutun im Hintergrund laufen. Verkauft wird gewonnene Zeit,
nicht Technik: 10 bis 15 Stunden pro Woche zurück, das System gehört danach dem Kunden.

Regeln:
- Kein Fachjargon (nicht "Agenten", "LLM", "Prompts", "Automation", "KI").
- Nenne eine konkrete Zeitersparnis pro Woche.
- Sprich einen typischen Engpass der Branche an.
- Du-Form, kurz und persönlich, höchstens 5 bis 7 Sätze im Text.
- Betreff: neugierig machen, nicht werblich.

Aufbau:
1. Persönlicher Bezug auf das, was über Person oder Firma bekannt ist.
2. Ein konkreter Engpass aus ihrem Alltag.
3. Die Lösung in Zeitgewinn ausgedrückt, nicht in Features.
4. Abschluss: "Wenn du magst, lass uns 15 Minuten sprechen: {config.OUTREACH_BOOKING_URL}"

Antworte NUR mit der E-Mail, ohne Kommentar. Format:
BETREFF: <Betreffzeile>

<E-Mail-Text>
""".strip()

LOW_CONTEXT_HINT = (
    "Hinweis: Es sind wenig Informationen verfügbar. Halte die E-Mail etwas allgemeiner, "
    "aber trotzdem persönlich und auf den Namen bezogen."
)

_LEAD_LINES = (
    ("company", "Unternehmen"),
    ("headline", "Headline/Position"),
    ("segment", "Branche"),
    ("website", "Website"),
    ("location", "Standort"),
)


# ==============================================================================
# Prompt pieces
# ==============================================================================

def _personalization_hooks(lead: Dict[str, Any], enrichment: Dict[str, Any]) -> List[str]:
    hooks = [key for key, _ in _LEAD_LINES if lead.get(key)]
    hooks += [key for key in ("company_description", "business_processes") if enrichment.get(key)]
    return hooks


def build_user_prompt(lead: Dict[str, Any], enrichment: Dict[str, Any]) -> str:
    lines = [
        "Schreibe eine personalisierte Outreach-E-Mail an folgende Person:",
        "",
        f"Name: {lead.get('name') or ''}",
    ]
    for key, label in _LEAD_LINES:
        if lead.get(key):
            lines.append(f"{label}: {lead[key]}")

    description = enrichment.get("company_description")
    processes = enrichment.get("business_processes")
    if description or processes:
        lines.append("")
        lines.append("--- Recherche-Ergebnisse ---")
        if description:
            lines.append(f"Firmenbeschreibung: {description}")
        if processes:
            lines.append(f"Geschäftsprozesse: {processes}")

    data_points = [lead.get("company"), lead.get("headline"), lead.get("segment"), description, processes]
    if sum(1 for d in data_points if d) <= 1:
        lines.append("")
        lines.append(LOW_CONTEXT_HINT)

    return "\n".join(lines)


def parse_email_text(raw: str) -> Dict[str, str]:
    """Split a 'BETREFF: ...' answer into subject and body. Missing parts come back empty."""
    lines = (raw or "").strip().split("\n")
    subject = ""
    body_start = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.upper().startswith("BETREFF:"):
            subject = stripped[len("BETREFF:") :].strip()
            body_start = i + 1
            break

    while body_start < len(lines) and not lines[body_start].strip():
        body_start += 1

    return {"subject": subject, "body": "\n".join(lines[body_start:]).strip()}


def fallback_email(name: str, error: Optional[str] = None) -> EmailDraftResult:
    name = (name or "").strip() or "du"
    body = (
        f"Hallo {name},\n\n"
        f"ich bin {config.OUTREACH_SENDER_NAME} von {config.OUTREACH_COMPANY}. Wir helfen Coaches und Beratern, "
        "10 bis 15 Stunden pro Woche zurückzugewinnen, indem wiederkehrende Aufgaben "
        "im Hintergrund von selbst erledigt werden.\n\n"
        f"Wenn du magst, lass uns 15 Minuten sprechen: {config.OUTREACH_BOOKING_URL}\n\n"
        f"Beste Grüße,\n{config.OUTREACH_SENDER_NAME}"
    )
    return EmailDraftResult(
        subject=f"Kurze Frage, {name}",
        body=body,
        personalization_hooks=[],
        model="fallback",
        error=error,
    )


# ==============================================================================
# Generation
# ==============================================================================

def _build_client() -> Optional[OpenAI]:
    if not config.OPENAI_API_KEY:
        return None
    return OpenAI(api_key=config.OPENAI_API_KEY)


def generate_outreach_email(
    lead: Dict[str, Any],
    enrichment: Optional[Dict[str, Any]] = None,
    *,
    client: Optional[Any] = None,
    model: Optional[str] = None,
) -> EmailDraftResult:
    """
    One chat-completions call -> EmailDraftResult.

    `enrichment` only contributes company_description / business_processes.
    Never raises: a missing key, an SDK error or an unparseable answer all
    return the fallback draft (model="fallback").
    """
    enrichment = {
        k: (enrichment or {}).get(k) for k in ("company_description", "business_processes")
    }
    model_name = model or config.EMAIL_MODEL
    name = lead.get("name") or ""

    client = client or _build_client()
    if client is None:
        logger.info("[email_draft] OPENAI_API_KEY not set; using fallback draft for %s", name)
        return fallback_email(name, error="OPENAI_API_KEY not set")

    try:
        resp = client.chat.completions.create(
            model=model_name,
            messages=[
                {"role": "system", "content": SYSTEM_TEXT},
                {"role": "user", "content": build_user_prompt(lead, enrichment)},
            ],
            temperature=0.7,
            max_tokens=600,
        )
        raw = (resp.choices[0].message.content or "") if resp.choices else ""
    except Exception as e:
        logger.warning(json.dumps({"event": "email_draft_failed", "lead": name, "error": str(e)}, sort_keys=True))
        return fallback_email(name, error=str(e))

    parsed = parse_email_text(raw)
    if not parsed["subject"] or not parsed["body"]:
        logger.warning("[email_draft] could not parse subject/body for %s; using fallback", name)
        return fallback_email(name, error="unparseable model response")

    return EmailDraftResult(
        subject=parsed["subject"][:200],
        body=parsed["body"],
        personalization_hooks=_personalization_hooks(lead, enrichment),
        model=model_name,
    )
