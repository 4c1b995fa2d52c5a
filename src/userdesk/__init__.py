"""User management service: REST API and web pages over a JSON user store."""

from .api import app

__all__ = ["app"]
