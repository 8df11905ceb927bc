"""Platform authenticator providers."""

from nvault.providers.authenticator.unavailable import UnavailableAuthenticator

__all__ = [
    "UnavailableAuthenticator",
]
