"""Versioned API routes, mounted under /api/v1."""

from . import offers, requests, sessions

__all__ = ["offers", "requests", "sessions"]
