"""
PPETS protocol variants, looked up by name.
"""
from ..errors import UnsupportedParameterError
from .abc import PPETSABC
from .base import DEFAULT_ATTRIBUTES, PPETSProtocol
from .fgp import PPETSFGP, PPETSFGPLite
from .policy import AttributePolicy, FarePolicy, TicketPolicy
from .setup import AID

PROTOCOLS: dict[str, type[PPETSProtocol]] = {
    PPETSABC.name: PPETSABC,
    PPETSFGP.name: PPETSFGP,
    PPETSFGPLite.name: PPETSFGPLite,
}


def get_protocol(name: str, policy: TicketPolicy | None = None) -> PPETSProtocol:
    try:
        return PROTOCOLS[name](policy)
    except KeyError:
        raise UnsupportedParameterError(f"unknown protocol: {name}") from None


__all__ = [
    "AID",
    "DEFAULT_ATTRIBUTES",
    "PROTOCOLS",
    "PPETSProtocol",
    "PPETSABC",
    "PPETSFGP",
    "PPETSFGPLite",
    "AttributePolicy",
    "FarePolicy",
    "TicketPolicy",
    "get_protocol",
]
