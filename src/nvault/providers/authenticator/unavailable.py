"""Authenticator for hosts without a platform authenticator.

A terminal process has no WebAuthn-style platform authenticator, so the
default reports itself unavailable and the biometric path short-circuits
with ``UnsupportedError`` before any prompt.
"""

from nvault.core.biometric import Assertion, AssertionRequest, Credential, CredentialRequest
from nvault.core.errors import UnsupportedError


class UnavailableAuthenticator:
    """Platform authenticator stand-in that is never available."""

    def is_available(self) -> bool:
        return False

    def create_credential(self, request: CredentialRequest) -> Credential:
        raise UnsupportedError("No platform authenticator on this device")

    def get_assertion(self, request: AssertionRequest) -> Assertion:
        raise UnsupportedError("No platform authenticator on this device")
