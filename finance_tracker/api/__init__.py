"""HTTP surface."""

from finance_tracker.api.main import create_app

__all__ = ["create_app"]
