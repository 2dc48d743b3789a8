"""IPTV playlist catalog with full-text search."""
