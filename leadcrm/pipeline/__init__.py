"""
Pipeline orchestration.

- dedup / streaming: discovery candidates -> dedup gate -> inserts -> NDJSON progress
- orchestrator: per-contact enrichment + email draft, recorded as activities
- supervisor: fire-and-forget background enrichment
- bulk / automations: sequential sweeps over stored contacts
"""
