"""Contact enrichment providers (website scrape, AI research) and outreach email drafting."""
