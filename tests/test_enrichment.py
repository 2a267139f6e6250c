"""
Tests for the enrichment building blocks: extraction, website scrape,
AI research parsing, combination rules and the outreach email draft.

No network: requests.get and the LLM clients are replaced with fakes.
"""

from types import SimpleNamespace

import pytest

from leadcrm.enrichment import website as website_mod
from leadcrm.enrichment.email_draft import (
    LOW_CONTEXT_HINT,
    build_user_prompt,
    fallback_email,
    generate_outreach_email,
    parse_email_text,
)
from leadcrm.enrichment.enrich import combine, enrich_lead
from leadcrm.enrichment.extractor import (
    extract_emails,
    extract_phones,
    is_generic_email,
    is_social_url,
    pick_best_email,
    pick_best_phone,
)
from leadcrm.enrichment.research import (
    MAX_SECTION_CHARS,
    ResearchFindings,
    build_research_query,
    parse_research,
    research_lead,
)
from leadcrm.enrichment.website import ScrapedSite, normalize_base_url, scrape_website
from leadcrm.errors import ProviderTimeout

RESEARCH_ANSWER = """1) Was macht die Firma?
Die Kanzlei berät Selbstständige und kleine GmbHs in Steuerfragen.
2) Welche typischen Geschäftsprozesse?
Belegerfassung, Lohnabrechnung und Mandantenkommunikation.
3) E-Mail-Adresse
info@kanzlei-berg.de, anna@kanzlei-berg.de
4) Telefonnummer: +49 30 1234567 (Büro)
5) Website: https://www.linkedin.com/in/anna-berg und https://kanzlei-berg.de
"""


@pytest.mark.unit
class TestExtractor:

    def test_emails_deobfuscated_and_junk_dropped(self):
        text = "Kontakt: Anna [at] kanzlei-berg [dot] de oder info@kanzlei-berg.de, logo@2x.png, bug@sentry.io"

        assert extract_emails(text) == ["anna@kanzlei-berg.de", "info@kanzlei-berg.de"]

    def test_emails_first_seen_order_unique(self):
        assert extract_emails("b@x.de a@x.de B@X.DE") == ["b@x.de", "a@x.de"]

    def test_phones_normalized(self):
        phones = extract_phones("Tel: +49 30 1234567 | Mobil: 0151 12345678")

        assert phones == ["+49301234567", "015112345678"]

    def test_short_numbers_ignored(self):
        assert extract_phones("Hausnummer 12, PLZ 10115") == []

    def test_pick_best_email_prefers_personal(self):
        assert pick_best_email(["info@x.de", "anna@x.de"]) == "anna@x.de"
        assert pick_best_email(["info@x.de", "kontakt@x.de"]) == "info@x.de"
        assert pick_best_email([]) is None
        assert is_generic_email("Kontakt@x.de")

    def test_pick_best_phone_prefers_mobile(self):
        assert pick_best_phone(["0301234567", "+4915112345678"]) == "+4915112345678"
        assert pick_best_phone(["0301234567"]) == "0301234567"
        assert pick_best_phone([]) is None

    def test_social_urls(self):
        assert is_social_url("https://www.LinkedIn.com/in/anna")
        assert not is_social_url("https://kanzlei-berg.de")


class FakeResponse:
    def __init__(self, text="", status=200, ctype="text/html; charset=utf-8"):
        self.text = text
        self.ok = 200 <= status < 300
        self.headers = {"content-type": ctype}


@pytest.mark.unit
class TestWebsiteScrape:

    def test_base_url(self):
        assert normalize_base_url(" vogt.de/ ") == "https://vogt.de"
        assert normalize_base_url("http://vogt.de") == "http://vogt.de"

    def test_scrape_collects_contact_data(self, monkeypatch, no_sleep):
        pages = {
            "https://vogt.de/impressum": FakeResponse(
                "<html><body><h1>Impressum</h1><p>E-Mail: lena@vogt.de</p><p>Tel: 030 1234567</p>"
                "<script>var x='tracking@sentry.io';</script></body></html>"
            ),
            "https://vogt.de/kontakt": FakeResponse("%PDF", ctype="application/pdf"),
            "https://vogt.de/": FakeResponse(
                '<html><head><meta name="description" content="Business-Coaching für Gründerinnen in Berlin">'
                "</head><body><p>Schreib an info@vogt.de</p></body></html>"
            ),
        }
        requested = []

        def fake_get(url, headers=None, timeout=None, allow_redirects=True):
            requested.append((url, timeout))
            return pages.get(url, FakeResponse(status=404))

        monkeypatch.setattr(website_mod.requests, "get", fake_get)

        site = scrape_website("vogt.de", timeout_s=3, delay_s=0.5, sleep=no_sleep)

        assert site.emails == ["lena@vogt.de", "info@vogt.de"]
        assert site.phones == ["0301234567"]
        assert site.description == "Business-Coaching für Gründerinnen in Berlin"
        assert site.pages_fetched == 2
        assert site.has_data
        assert requested[0] == ("https://vogt.de/impressum", 3)
        assert len(requested) == 6
        assert no_sleep.calls == [0.5] * 5

    def test_transport_errors_give_empty_result(self, monkeypatch, no_sleep):
        def broken_get(*args, **kwargs):
            raise website_mod.requests.ConnectionError("dns")

        monkeypatch.setattr(website_mod.requests, "get", broken_get)

        site = scrape_website("https://nowhere.invalid", timeout_s=1, delay_s=0, sleep=no_sleep)

        assert not site.has_data
        assert site.pages_fetched == 0
        assert no_sleep.calls == []


@pytest.mark.unit
class TestResearch:

    def test_query_mentions_known_fields(self):
        q = build_research_query(
            {"name": "Anna Berg", "company": "Kanzlei Berg", "website": "https://kanzlei-berg.de", "headline": None}
        )

        assert q.startswith('Recherchiere Anna Berg von der Firma "Kanzlei Berg" (Website: https://kanzlei-berg.de)')
        assert "Beschreibung" not in q
        assert "2) Welche typischen Geschäftsprozesse" in q

    def test_parse_numbered_answer(self):
        out = parse_research(RESEARCH_ANSWER)

        assert out.company_description == "Die Kanzlei berät Selbstständige und kleine GmbHs in Steuerfragen."
        assert out.business_processes == "Belegerfassung, Lohnabrechnung und Mandantenkommunikation."
        assert out.email == "anna@kanzlei-berg.de"
        assert out.phone == "+49301234567"
        assert out.website == "https://kanzlei-berg.de"

    def test_description_falls_back_to_first_long_line(self):
        out = parse_research("Kurz.\nAnna Berg führt seit 2010 eine Steuerkanzlei in Hamburg.\n")

        assert out.company_description == "Anna Berg führt seit 2010 eine Steuerkanzlei in Hamburg."
        assert out.business_processes is None

    def test_sections_are_capped(self):
        long = "x" * (MAX_SECTION_CHARS + 500)

        out = parse_research(f"1) Was macht die Firma?\n{long}\n2) Prozesse\nkurz\n3) Mail\n")

        assert len(out.company_description) == MAX_SECTION_CHARS

    def test_empty_content(self):
        assert parse_research("") == ResearchFindings()

    def test_research_without_key_is_skipped(self):
        client = SimpleNamespace(configured=False)

        assert research_lead({"name": "Anna"}, client=client) is None

    def test_research_timeout_is_absorbed(self):
        class TimeoutClient:
            configured = True

            def chat(self, messages, **kwargs):
                raise ProviderTimeout(30)

        assert research_lead({"name": "Anna"}, client=TimeoutClient()) is None

    def test_research_parses_answer(self):
        calls = []

        class AnsweringClient:
            configured = True

            def chat(self, messages, **kwargs):
                calls.append(kwargs)
                return RESEARCH_ANSWER

        out = research_lead({"name": "Anna"}, client=AnsweringClient(), model="perplexity/sonar", timeout_s=7)

        assert out.email == "anna@kanzlei-berg.de"
        assert calls == [{"model": "perplexity/sonar", "timeout_s": 7}]


@pytest.mark.unit
class TestCombine:

    def test_full_combination(self):
        scraped = ScrapedSite(
            emails=["info@kanzlei-berg.de", "anna.berg@kanzlei-berg.de"],
            phones=["0301234567", "12345"],
            description="Homepage blurb",
        )
        research = ResearchFindings(
            email="anna.berg@kanzlei-berg.de",
            phone="+4915112345678",
            company_description="Steuerkanzlei.",
            business_processes="Belege.",
        )

        result = combine({"name": "Anna Berg", "website": "https://kanzlei-berg.de"}, scraped, research)

        assert result.status == "complete"
        assert result.enrichment_source == "both"
        assert result.email == "anna.berg@kanzlei-berg.de"
        assert result.email_source() == "website"
        assert result.phone == "+4915112345678"
        assert [(f.value, f.source) for f in result.all_phones_found] == [
            ("0301234567", "website"),
            ("+4915112345678", "ai"),
        ]
        assert result.company_description == "Steuerkanzlei."
        assert result.website == "https://kanzlei-berg.de"

    def test_existing_values_win_and_come_first(self):
        scraped = ScrapedSite(emails=["info@x.de"], phones=["015112345678"])

        result = combine({"name": "A", "email": "Anna@X.de", "phone": "030 999 888"}, scraped, None)

        assert result.email == "anna@x.de"
        assert result.phone == "030 999 888"
        assert result.all_emails_found[0].source == "existing"
        assert result.all_phones_found[0].value == "030999888"
        assert result.all_phones_found[0].source == "existing"

    def test_website_only_is_partial(self):
        result = combine({"name": "A"}, ScrapedSite(description="Nur eine Beschreibung"), None)

        assert result.status == "partial"
        assert result.enrichment_source == "website"
        assert result.company_description == "Nur eine Beschreibung"

    def test_nothing_found_is_failed(self):
        result = combine({"name": "A"}, ScrapedSite(), None)

        assert result.status == "failed"
        assert result.enrichment_source is None

    def test_research_supplies_missing_website(self):
        result = combine({"name": "A"}, None, ResearchFindings(website="https://a.de"))

        assert result.website == "https://a.de"
        assert result.enrichment_source == "perplexity"


@pytest.mark.unit
class TestEnrichLead:

    def test_scraper_skipped_without_website(self):
        scraped = []

        result = enrich_lead(
            {"name": "A"},
            scraper=lambda url: scraped.append(url),
            researcher=lambda lead: ResearchFindings(company_description="Beschreibung"),
        )

        assert scraped == []
        assert result.status == "partial"

    def test_scraper_failure_falls_through_to_research(self):
        def boom(url):
            raise RuntimeError("ssl")

        result = enrich_lead(
            {"name": "A", "website": "https://a.de"},
            scraper=boom,
            researcher=lambda lead: ResearchFindings(email="a@a.de"),
        )

        assert result.email == "a@a.de"
        assert result.enrichment_source == "perplexity"

    def test_unexpected_failure_keeps_known_fields(self):
        def boom(lead):
            raise RuntimeError("parser crashed")

        result = enrich_lead({"name": "A", "email": "a@a.de"}, scraper=lambda url: ScrapedSite(), researcher=boom)

        assert result.status == "failed"
        assert result.error == "parser crashed"
        assert result.email == "a@a.de"


def fake_openai(content=None, error=None):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, calls


@pytest.mark.unit
class TestEmailDraft:

    def test_parse_email_text(self):
        parsed = parse_email_text("BETREFF: Kurze Idee\n\nHallo Anna,\nText.\n")

        assert parsed == {"subject": "Kurze Idee", "body": "Hallo Anna,\nText."}

    def test_parse_without_subject(self):
        assert parse_email_text("Hallo Anna") == {"subject": "", "body": "Hallo Anna"}

    def test_low_context_hint(self):
        assert LOW_CONTEXT_HINT in build_user_prompt({"name": "Anna"}, {})

        rich = build_user_prompt(
            {"name": "Anna", "company": "Kanzlei Berg", "headline": "Inhaberin"},
            {"company_description": "Steuerkanzlei."},
        )
        assert LOW_CONTEXT_HINT not in rich
        assert "--- Recherche-Ergebnisse ---" in rich
        assert "Firmenbeschreibung: Steuerkanzlei." in rich

    def test_fallback_email(self):
        draft = fallback_email("  ")

        assert draft.subject == "Kurze Frage, du"
        assert draft.model == "fallback"
        assert "error" not in draft.as_dict()

    def test_generated_draft(self):
        client, calls = fake_openai("BETREFF: 10 Stunden pro Woche?\n\nHallo Anna,\nkurze Frage.")

        draft = generate_outreach_email(
            {"name": "Anna", "company": "Kanzlei Berg", "segment": "steuerberater_kanzlei"},
            {"company_description": "Steuerkanzlei.", "email": "ignored@x.de"},
            client=client,
            model="gpt-test",
        )

        assert draft.subject == "10 Stunden pro Woche?"
        assert draft.body == "Hallo Anna,\nkurze Frage."
        assert draft.model == "gpt-test"
        assert draft.personalization_hooks == ["company", "segment", "company_description"]
        assert calls[0]["temperature"] == 0.7
        assert "ignored@x.de" not in calls[0]["messages"][1]["content"]

    def test_sdk_error_returns_fallback(self):
        client, _ = fake_openai(error=RuntimeError("rate limited"))

        draft = generate_outreach_email({"name": "Anna"}, client=client)

        assert draft.model == "fallback"
        assert draft.error == "rate limited"
        assert draft.subject == "Kurze Frage, Anna"

    def test_unparseable_answer_returns_fallback(self):
        client, _ = fake_openai("Leider kann ich das nicht.")

        assert generate_outreach_email({"name": "Anna"}, client=client).model == "fallback"

    def test_missing_key_returns_fallback(self):
        draft = generate_outreach_email({"name": "Anna"})

        assert draft.model == "fallback"
        assert draft.error == "OPENAI_API_KEY not set"
