"""HTTP API."""

from invoicez.api.app import create_app

__all__ = ["create_app"]
