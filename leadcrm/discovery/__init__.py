"""Candidate discovery: segment query variations driven through the LLM search provider."""
