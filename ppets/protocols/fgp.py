"""
PPETS-FGP: privacy-preserving e-ticketing with fine-grained pricing, and its
lighter variant.

The lite variant reuses setup, registration and the ticket/challenge
exchange unchanged; only the issuing request and the possession proof are
replaced (see lite.py).
"""
from __future__ import annotations

from ..protocol.state import State
from .base import PPETSProtocol
from .lite import LiteIssueTicket, LiteProveTicket, LiteSendTicketRequest, LiteVerifyTicket
from .policy import FarePolicy, TicketPolicy


class PPETSFGP(PPETSProtocol):
    name = "PPETSFGP"

    def default_policy(self) -> TicketPolicy:
        return FarePolicy()


class PPETSFGPLite(PPETSFGP):
    name = "PPETSFGPLite"

    def reader_issue(self) -> State:
        return LiteIssueTicket(self.policy)

    def reader_verify(self) -> State:
        return LiteVerifyTicket(self.policy)

    def device_request(self) -> State:
        return LiteSendTicketRequest()

    def device_prove(self) -> State:
        return LiteProveTicket()
