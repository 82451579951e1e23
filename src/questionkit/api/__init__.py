"""HTTP API for questionkit."""

from questionkit.api.server import create_app

__all__ = ["create_app"]
