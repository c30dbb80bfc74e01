"""HTTP API for the lead workflow service."""

from .app import create_app

__all__ = ["create_app"]
