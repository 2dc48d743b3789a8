"""Utility helpers for the catalog API."""
