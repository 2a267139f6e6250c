"""FastAPI surface: NDJSON pipeline streams plus the small CRM endpoints around them."""
