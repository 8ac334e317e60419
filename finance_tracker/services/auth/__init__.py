"""Identity provider client package."""

from finance_tracker.services.auth.google_oauth import GoogleOAuthClient, RefreshedToken

__all__ = ["GoogleOAuthClient", "RefreshedToken"]
