"""Command line client for the catalog API."""

from .app import app

__all__ = ["app"]
