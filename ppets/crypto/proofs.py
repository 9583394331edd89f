"""
Non-interactive proofs used by the PPETS states.

Both proofs are Fiat-Shamir Schnorr protocols over a Group:
- DlogProof: knowledge of x with Y = g^x. Binding a message into the
  challenge turns it into a Schnorr signature.
- OpeningProof: knowledge of (m, r) with C = g^m * h^r.
"""
from __future__ import annotations

from dataclasses import dataclass

from .provider import CryptoProvider, Group


@dataclass(frozen=True)
class DlogProof:
    c: int
    s: int


@dataclass(frozen=True)
class OpeningProof:
    c: int
    s1: int
    s2: int


def prove_dlog(provider: CryptoProvider, group: Group, x: int, y: int,
               context: bytes = b"") -> DlogProof:
    k = provider.secure_random(group.order)
    t = group.exp(group.g, k)
    c = provider.hash_to_scalar(group, b"dlog", group.g, y, t, context)
    return DlogProof(c=c, s=(k + c * x) % group.order)


def verify_dlog(provider: CryptoProvider, group: Group, y: int, proof: DlogProof,
                context: bytes = b"") -> bool:
    if not group.contains(y):
        return False
    t = group.mul(group.exp(group.g, proof.s), group.exp(y, -proof.c))
    return proof.c == provider.hash_to_scalar(group, b"dlog", group.g, y, t, context)


def sign(provider: CryptoProvider, group: Group, x: int, message: bytes) -> DlogProof:
    """Schnorr signature on message under public key g^x."""
    return prove_dlog(provider, group, x, group.exp(group.g, x), b"sig" + message)


def verify_signature(provider: CryptoProvider, group: Group, y: int, message: bytes,
                     signature: DlogProof) -> bool:
    return verify_dlog(provider, group, y, signature, b"sig" + message)


def prove_opening(provider: CryptoProvider, group: Group, m: int, r: int,
                  commitment: int, context: bytes = b"") -> OpeningProof:
    k1 = provider.secure_random(group.order)
    k2 = provider.secure_random(group.order)
    t = group.commit(k1, k2)
    c = provider.hash_to_scalar(group, b"open", commitment, t, context)
    return OpeningProof(
        c=c,
        s1=(k1 + c * m) % group.order,
        s2=(k2 + c * r) % group.order,
    )


def verify_opening(provider: CryptoProvider, group: Group, commitment: int,
                   proof: OpeningProof, context: bytes = b"") -> bool:
    if not group.contains(commitment):
        return False
    t = group.mul(group.commit(proof.s1, proof.s2), group.exp(commitment, -proof.c))
    return proof.c == provider.hash_to_scalar(group, b"open", commitment, t, context)
