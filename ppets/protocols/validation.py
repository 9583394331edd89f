"""
Validation states.

The validator challenges the device with a fresh nonce, the device returns
its ticket plus a proof of possession bound to the nonce. The validator
checks the seller's signature, the proof and the ticket terms, then consults
its consumption record: a serial seen before is a double spend.

Validation repeats num_validations times against the same ticket, so every
pass after the first is expected to be caught as a double spend.
"""
from __future__ import annotations

import secrets

from ..crypto.proofs import OpeningProof, prove_opening, verify_opening, verify_signature
from ..errors import ProtocolError, VerificationError
from ..protocol.actions import Action, ReaderCommand
from ..protocol.codec import Fields, pack_fields
from ..protocol.context import SharedContext
from ..protocol.data import Actor, Ticket, UserData, ValidationOutcome, ValidatorData
from ..protocol.message import Message
from ..protocol.state import DeviceState, Phase, ReaderState
from .policy import TicketPolicy
from .setup import acknowledged

NONCE_BYTES = 16


# === Reader states ===

class SendChallenge(ReaderState):
    phase = Phase.VALIDATION
    successors = (8,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not acknowledged(message):
            return None

        validator = context.act_as(Actor.VALIDATOR, ValidatorData)
        validator.nonce = secrets.token_bytes(NONCE_BYTES)
        return self.send(ReaderCommand.PUT, 8, validator.nonce)


class RequestTicketProof(ReaderState):
    phase = Phase.VALIDATION
    successors = (9,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if acknowledged(message):
            return self.send(ReaderCommand.GET, 9)
        return None


class VerifyTicket(ReaderState):
    """Validator: check the presented ticket and record the outcome."""

    phase = Phase.VALIDATION
    successors = (10,)

    # commitment opening proof (c, s1, s2)
    proof_fields = 3

    def __init__(self, policy: TicketPolicy):
        self.policy = policy

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        fields = Fields(message.payload, Ticket.FIELD_COUNT + self.proof_fields)
        ticket = Ticket.read(fields)
        validator = context.act_as(Actor.VALIDATOR, ValidatorData)
        if validator.nonce is None:
            raise ProtocolError("ticket proof received without an outstanding challenge")
        nonce, validator.nonce = validator.nonce, None

        try:
            self.verify(context, ticket, fields, nonce)
        except VerificationError as e:
            validator.outcomes.append(ValidationOutcome.VERIFICATION_FAILED)
            context.log("error", f"[Validation] {e}")
            return self.finish(payload=ValidationOutcome.encode_all(validator.outcomes), success=False)

        if ticket.serial in validator.seen_serials:
            outcome = ValidationOutcome.DOUBLE_SPEND_DETECTED
            context.log("warn", f"[Validation] double spend detected for ticket {ticket.serial.hex()}")
        else:
            validator.seen_serials.add(ticket.serial)
            outcome = ValidationOutcome.VALID
            context.log("info", f"[Validation] ticket {ticket.serial.hex()} valid")

        validator.outcomes.append(outcome)
        return self.send(ReaderCommand.PUT_INTERNAL, 10, bytes([outcome.value]))

    def verify(self, context: SharedContext, ticket: Ticket, fields: Fields, nonce: bytes) -> None:
        group = context.require_group()
        context.require_verified(
            verify_signature(
                context.crypto,
                group,
                context.public_key(Actor.SELLER),
                ticket.signed_body,
                ticket.signature,
            ),
            "ticket signature",
        )
        context.require_verified(self.check_possession(context, ticket, fields, nonce),
                                 "ticket possession proof")
        context.require_verified(
            ticket.service == self.policy.service and self.policy.accepts(ticket.terms),
            f"{self.policy.service} ticket terms",
        )

    def check_possession(self, context: SharedContext, ticket: Ticket, fields: Fields,
                         nonce: bytes) -> bool:
        proof = OpeningProof(c=fields.integer(), s1=fields.integer(), s2=fields.integer())
        return verify_opening(context.crypto, context.require_group(), ticket.commitment, proof, nonce)


class FinishValidation(ReaderState):
    """Loop back for another validation pass or close the session."""

    phase = Phase.VALIDATION
    successors = (7,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        validator = context.act_as(Actor.VALIDATOR, ValidatorData)
        done = len(validator.outcomes)
        if done < context.config.num_validations:
            context.log("debug", f"[Validation] pass {done} of {context.config.num_validations} complete")
            return self.send(ReaderCommand.GET_INTERNAL, 7)

        return self.finish(payload=ValidationOutcome.encode_all(validator.outcomes))


# === Device states ===

class StoreChallenge(DeviceState):
    phase = Phase.VALIDATION
    successors = (6,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.has_data:
            return None

        user = context.act_as(Actor.USER, UserData)
        user.nonce = message.payload
        return self.respond(6)


class ProveTicket(DeviceState):
    """Present the ticket with a proof of possession bound to the nonce."""

    phase = Phase.VALIDATION
    successors = (5,)

    def get_action(self, message: Message, context: SharedContext) -> Action | None:
        if not message.is_request:
            return None

        user = context.act_as(Actor.USER, UserData)
        if user.ticket is None or user.nonce is None:
            raise ProtocolError("ticket proof requested without ticket or challenge")

        proof = self.prove(context, user, user.nonce)
        user.nonce = None
        user.validations += 1
        final = user.validations >= context.config.num_validations
        return self.respond(5, pack_fields(*user.ticket.fields(), *proof), final=final)

    def prove(self, context: SharedContext, user: UserData, nonce: bytes) -> tuple[int, ...]:
        proof = prove_opening(context.crypto, context.require_group(), user.d, user.r,
                              user.ticket.commitment, nonce)
        return proof.c, proof.s1, proof.s2
