from .config import SessionConfig, Scenario, load_scenario, parse_parameters
from .crypto import CryptoProvider, DefaultCryptoProvider, PairingType
from .engine import SessionEngine, SessionResult, run_loopback, run_scenario
from .errors import (
    PPETSError,
    ConfigurationError,
    UnsupportedParameterError,
    ProtocolError,
    VerificationError,
)
from .protocol import (
    Message,
    SharedContext,
    StateMachine,
    Status,
    ValidationOutcome,
)
from .protocols import PPETSABC, PPETSFGP, PPETSFGPLite, get_protocol
from .transport import ITransport, LoopbackTransport

__all__ = [
    "SessionConfig",
    "Scenario",
    "load_scenario",
    "parse_parameters",
    "CryptoProvider",
    "DefaultCryptoProvider",
    "PairingType",
    "SessionEngine",
    "SessionResult",
    "run_loopback",
    "run_scenario",
    "PPETSError",
    "ConfigurationError",
    "UnsupportedParameterError",
    "ProtocolError",
    "VerificationError",
    "Message",
    "SharedContext",
    "StateMachine",
    "Status",
    "ValidationOutcome",
    "PPETSABC",
    "PPETSFGP",
    "PPETSFGPLite",
    "get_protocol",
    "ITransport",
    "LoopbackTransport",
]

__version__ = "0.1.0"
