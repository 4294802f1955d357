"""Helpers shared by the API layer: throttling, domain extraction, query log."""
