"""
Per-actor private data and the ticket record.

Each actor role has exactly one record type (ACTOR_DATA). Records live only
on the peer that plays the role and are never serialised into the wire form.
Secret fields are kept out of repr().
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..crypto.proofs import DlogProof
from .codec import Fields, pack_fields


class Actor(Enum):
    CENTRAL_VERIFIER = "central_verifier"
    SELLER = "seller"
    USER = "user"
    VALIDATOR = "validator"


SERVER_ACTORS = frozenset({Actor.CENTRAL_VERIFIER, Actor.SELLER, Actor.VALIDATOR})
DEVICE_ACTORS = frozenset({Actor.USER})


class ValidationOutcome(Enum):
    VALID = 1
    DOUBLE_SPEND_DETECTED = 2
    VERIFICATION_FAILED = 3

    @staticmethod
    def encode_all(outcomes: list[ValidationOutcome]) -> bytes:
        return bytes(o.value for o in outcomes)

    @classmethod
    def decode_all(cls, data: bytes | None) -> list[ValidationOutcome]:
        return [cls(b) for b in data or b""]


@dataclass(frozen=True)
class Ticket:
    """A ticket as issued by the seller: body plus the seller's signature."""

    serial: bytes
    service: str
    terms: dict[str, Any]
    commitment: int
    signature: DlogProof

    FIELD_COUNT = 6

    @staticmethod
    def body(serial: bytes, service: str, terms: dict[str, Any], commitment: int) -> bytes:
        return pack_fields(serial, service, terms, commitment)

    @property
    def signed_body(self) -> bytes:
        return self.body(self.serial, self.service, self.terms, self.commitment)

    def fields(self) -> tuple:
        return (self.serial, self.service, self.terms, self.commitment,
                self.signature.c, self.signature.s)

    @classmethod
    def read(cls, fields: Fields) -> Ticket:
        return cls(
            serial=fields.raw(),
            service=fields.text(),
            terms=fields.mapping(),
            commitment=fields.integer(),
            signature=DlogProof(c=fields.integer(), s=fields.integer()),
        )


# === Actor records ===

@dataclass
class ActorData:
    """Base class for all actor records."""


@dataclass
class CentralVerifierData(ActorData):
    x_cv: int = field(default=0, repr=False)
    # user public key -> certified attributes
    registered: dict[int, dict[str, Any]] = field(default_factory=dict)


@dataclass
class SellerData(ActorData):
    x_s: int = field(default=0, repr=False)


@dataclass
class UserData(ActorData):
    attributes: dict[str, Any] = field(default_factory=dict)
    x_u: int = field(default=0, repr=False)
    y_u: int = 0
    credential: DlogProof | None = None
    # commitment opening (d, r) to the ticket secret
    d: int = field(default=0, repr=False)
    r: int = field(default=0, repr=False)
    commitment: int = 0
    ticket: Ticket | None = None
    nonce: bytes | None = None
    validations: int = 0


@dataclass
class ValidatorData(ActorData):
    nonce: bytes | None = None
    # consumption record: serials of tickets already redeemed
    seen_serials: set[bytes] = field(default_factory=set)
    outcomes: list[ValidationOutcome] = field(default_factory=list)


ACTOR_DATA: dict[Actor, type[ActorData]] = {
    Actor.CENTRAL_VERIFIER: CentralVerifierData,
    Actor.SELLER: SellerData,
    Actor.USER: UserData,
    Actor.VALIDATOR: ValidatorData,
}
