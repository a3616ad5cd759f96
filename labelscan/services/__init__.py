"""Scan processing core: matching, enrichment, persistence and notification state."""
