"""
PPETS error hierarchy.

Configuration errors are absorbed where parameters are set.
Everything else is turned into an END_FAILURE step by the state machine.
"""
from __future__ import annotations


class PPETSError(Exception):
    """Base class for all PPETS errors."""


# === Configuration ===

class ConfigurationError(PPETSError):
    """A session parameter could not be applied."""


class UnsupportedParameterError(ConfigurationError):
    """A parameter value is outside the supported set (e.g. pairing family)."""


# === Protocol violations ===

class ProtocolError(PPETSError):
    """The peers are no longer in lock-step; fatal to the session."""


class MalformedPayloadError(ProtocolError):
    """A payload does not have the shape the current state expects."""


class InvalidStateIndexError(ProtocolError):
    """A state pointed at an index outside the registered sequence."""


class RoleAccessError(ProtocolError):
    """Actor data was requested for a role this peer does not play."""


class SessionClosedError(ProtocolError):
    """advance() was called after the session reached a terminal status."""


# === Cryptographic verification ===

class VerificationError(PPETSError):
    """A proof or signature check failed and skip_verification is off."""

    def __init__(self, check: str):
        super().__init__(f"verification failed: {check}")
        self.check = check
