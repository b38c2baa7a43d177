"""Bridge error taxonomy.

Provisioning surfaces these to the caller; event-driven handlers log them at
the handler boundary and move on.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for failures raised by the core."""


class InvalidAlias(BridgeError):
    """The alias or localpart does not carry the virtual user prefix."""

    def __init__(self, localpart: str) -> None:
        super().__init__(f"Invalid alias ({localpart}): missing prefix")
        self.localpart = localpart


class AuthorizationMissing(BridgeError):
    """The account never authorized the bridge to use it."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"{handle} has not authorized us to use their account")
        self.handle = handle


class UpstreamFetchFailure(BridgeError):
    """A profile or media fetch from the content source failed."""


class UploadFailure(BridgeError):
    """Uploading content to the chat network failed."""
