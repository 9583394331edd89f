"""
PPETS Transport Layer.

Carries reader commands to the device and returns its replies.
"""
from .interface import ITransport
from .loopback import LoopbackTransport, DEFAULT_TIMEOUT_MS

__all__ = [
    "ITransport",
    "LoopbackTransport",
    "DEFAULT_TIMEOUT_MS",
]
