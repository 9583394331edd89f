"""
Lite issuing and validation states.

The lite variant binds the ticket to the user's public key instead of a
fresh Pedersen commitment, so both the ticket request and the possession
proof are single-base Schnorr proofs. The states sit at the same indices as
the ones they replace and exchange tickets in the same shape.
"""
from __future__ import annotations

from ..crypto.proofs import DlogProof, prove_dlog, verify_dlog
from ..protocol.codec import Fields
from ..protocol.context import SharedContext
from ..protocol.data import Ticket, UserData
from .issuing import IssueTicket, SendTicketRequest, issue_context
from .validation import ProveTicket, VerifyTicket


class LiteIssueTicket(IssueTicket):
    # y_u, attributes, credential (2), commitment, key proof (2)
    request_fields = 7

    def check_commitment(self, context: SharedContext, y_u: int, fields: Fields) -> int:
        commitment = fields.integer()
        proof = DlogProof(c=fields.integer(), s=fields.integer())
        context.require_verified(
            commitment == y_u
            and verify_dlog(context.crypto, context.require_group(), commitment, proof, issue_context(y_u)),
            "lite ticket request",
        )
        return commitment


class LiteSendTicketRequest(SendTicketRequest):
    def commit(self, context: SharedContext, user: UserData) -> tuple[int, ...]:
        user.d, user.r = user.x_u, 0
        user.commitment = user.y_u
        proof = prove_dlog(context.crypto, context.require_group(), user.x_u, user.y_u,
                           issue_context(user.y_u))
        return proof.c, proof.s


class LiteVerifyTicket(VerifyTicket):
    proof_fields = 2

    def check_possession(self, context: SharedContext, ticket: Ticket, fields: Fields,
                         nonce: bytes) -> bool:
        proof = DlogProof(c=fields.integer(), s=fields.integer())
        return verify_dlog(context.crypto, context.require_group(), ticket.commitment, proof, nonce)


class LiteProveTicket(ProveTicket):
    def prove(self, context: SharedContext, user: UserData, nonce: bytes) -> tuple[int, ...]:
        proof = prove_dlog(context.crypto, context.require_group(), user.x_u, user.y_u, nonce)
        return proof.c, proof.s
