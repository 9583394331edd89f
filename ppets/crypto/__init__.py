from .provider import (
    CURVES,
    CryptoProvider,
    Curve,
    CurveGroup,
    DefaultCryptoProvider,
    Group,
    ModularGroup,
    PairingType,
    restore_group,
)
from .proofs import (
    DlogProof,
    OpeningProof,
    prove_dlog,
    prove_opening,
    sign,
    verify_dlog,
    verify_opening,
    verify_signature,
)

__all__ = [
    "CURVES",
    "CryptoProvider",
    "Curve",
    "CurveGroup",
    "DefaultCryptoProvider",
    "Group",
    "ModularGroup",
    "PairingType",
    "restore_group",
    "DlogProof",
    "OpeningProof",
    "prove_dlog",
    "prove_opening",
    "sign",
    "verify_dlog",
    "verify_opening",
    "verify_signature",
]
