"""
PPETS-ABC: privacy-preserving e-ticketing with attribute-based credentials.

The ticket carries the attribute condition it was issued under, never the
attribute values themselves.
"""
from __future__ import annotations

from .base import PPETSProtocol
from .policy import AttributePolicy, TicketPolicy


class PPETSABC(PPETSProtocol):
    name = "PPETSABC"

    def default_policy(self) -> TicketPolicy:
        return AttributePolicy()
