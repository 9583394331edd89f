"""
Issuing states.

The device asks for a ticket with its credential and a commitment to a fresh
ticket secret; the seller checks both, applies its ticket policy and signs
the ticket over the commitment, so the seller never learns the secret the
ticket holder later proves knowledge of.
"""
from __future__ import annotations

import secrets

from ..crypto.proofs import DlogProof, OpeningProof, prove_opening, sign, verify_opening, verify_signature
from ..errors import ProtocolError
from ..protocol.actions import Action, ReaderCommand
from ..protocol.codec import Fields, pack_fields
from ..protocol.context import SharedContext
from ..protocol.data import Actor, CentralVerifierData, SellerData, Ticket, UserData
from ..protocol.message import Message
from ..protocol.state import DeviceState, Phase, ReaderState
from .policy import TicketPolicy
from .registration import credential_message

SERIAL_BYTES = 16


def issue_context(y_u: int) -> bytes:
    return pack_fields(b"ppets-issue", y_u)


# === Reader states ===

class IssueTicket(ReaderState):
    """Seller: verify the ticket request and issue a signed ticket."""

    phase = Phase.ISSUING
    successors = (7,)

    # y_u, attributes, credential (2), commitment, commitment proof
    request_fields = 8

    def __init__(self, policy: TicketPolicy):
        self.policy = policy

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        fields = Fields(message.payload, self.request_fields)
        y_u = fields.integer()
        attributes = fields.mapping()
        credential = DlogProof(c=fields.integer(), s=fields.integer())

        group = context.require_group()
        seller = context.act_as(Actor.SELLER, SellerData)
        context.require_verified(
            verify_signature(
                context.crypto,
                group,
                context.public_key(Actor.CENTRAL_VERIFIER),
                credential_message(y_u, attributes),
                credential,
            ),
            "user credential",
        )
        registered = context.data_for(Actor.CENTRAL_VERIFIER, CentralVerifierData).registered
        context.require_verified(registered.get(y_u) == attributes, "user registration")
        commitment = self.check_commitment(context, y_u, fields)

        terms = self.policy.terms_for(attributes)
        context.require_verified(terms is not None, f"{self.policy.service} issuing policy")

        serial = secrets.token_bytes(SERIAL_BYTES)
        body = Ticket.body(serial, self.policy.service, terms or {}, commitment)
        ticket = Ticket(
            serial=serial,
            service=self.policy.service,
            terms=terms or {},
            commitment=commitment,
            signature=sign(context.crypto, group, seller.x_s, body),
        )

        context.log("info", f"[Issuing] issued {self.policy.service} ticket {serial.hex()} terms={ticket.terms}")
        return self.send(ReaderCommand.PUT, 7, pack_fields(*ticket.fields()))

    def check_commitment(self, context: SharedContext, y_u: int, fields: Fields) -> int:
        commitment = fields.integer()
        proof = OpeningProof(c=fields.integer(), s1=fields.integer(), s2=fields.integer())
        context.require_verified(
            verify_opening(context.crypto, context.require_group(), commitment, proof, issue_context(y_u)),
            "ticket commitment proof",
        )
        return commitment


# === Device states ===

class SendTicketRequest(DeviceState):
    """Device: commit to a fresh ticket secret and ask for a ticket."""

    phase = Phase.ISSUING
    successors = (4,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.is_request:
            return None

        user = context.act_as(Actor.USER, UserData)
        if user.credential is None:
            raise ProtocolError("ticket requested before registration completed")

        proof_fields = self.commit(context, user)
        return self.respond(4, pack_fields(
            user.y_u,
            user.attributes,
            user.credential.c,
            user.credential.s,
            user.commitment,
            *proof_fields,
        ))

    def commit(self, context: SharedContext, user: UserData) -> tuple[int, ...]:
        group = context.require_group()
        user.d = context.crypto.secure_random(group.order)
        user.r = context.crypto.secure_random(group.order)
        user.commitment = group.commit(user.d, user.r)
        proof = prove_opening(context.crypto, group, user.d, user.r, user.commitment,
                              issue_context(user.y_u))
        return proof.c, proof.s1, proof.s2


class StoreTicket(DeviceState):
    phase = Phase.ISSUING
    successors = (5,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        ticket = Ticket.read(Fields(message.payload, Ticket.FIELD_COUNT))
        user = context.act_as(Actor.USER, UserData)
        signed = verify_signature(
            context.crypto,
            context.require_group(),
            context.public_key(Actor.SELLER),
            ticket.signed_body,
            ticket.signature,
        )
        context.require_verified(signed and ticket.commitment == user.commitment, "ticket signature")

        user.ticket = ticket
        context.log("info", f"[Issuing] stored ticket {ticket.serial.hex()}")
        return self.respond(5)
