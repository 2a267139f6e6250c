"""
leadcrm: lead discovery and enrichment pipeline.

Responsible for:
- Discovering candidate contacts for a target segment via an LLM-backed search provider.
- Deduplicating candidates against the contact store and inserting the new ones.
- Enriching accepted contacts in the background and drafting an outreach email.
- Recording every pipeline step as an activity on the contact.
"""

__version__ = "0.1.0"
