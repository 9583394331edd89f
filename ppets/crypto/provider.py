"""
Crypto parameter provider.

Instantiates the group a PPETS session runs in and hands out scalars.
The protocol states never do group arithmetic beyond what Group exposes.

Pairing families follow the PBC naming:
    A  - prime-order pairing group on BN128 (alt_bn128)   (r_bits, q_bits)
    E  - prime-order pairing group on BLS12-381           (r_bits, q_bits)
    A1 - composite order n = p1 * ... * pk                (prime count, prime bits)

For A/E the strength slots are the minimum sizes of the group order and of
the base field; the curve must meet them. For A1 the two slots change
meaning, not just value. py_ecc has no composite-order curve, so A1 is a
composite-order subgroup of Z_q* and has no pairing.

Group elements are plain integers everywhere outside this module: a curve
point (x, y) is x * q + y, the point at infinity is 0.
"""
from __future__ import annotations

import secrets
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from math import prod
from types import ModuleType
from typing import Any, Protocol, runtime_checkable

import gmpy2
from cryptography.hazmat.primitives import hashes
from py_ecc import optimized_bls12_381, optimized_bn128

from ..errors import ConfigurationError, UnsupportedParameterError


class PairingType(Enum):
    TYPE_A = "A"
    TYPE_A1 = "A1"
    TYPE_E = "E"

    @classmethod
    def parse(cls, name: str) -> PairingType:
        try:
            return cls(name.strip())
        except ValueError:
            raise UnsupportedParameterError(
                f"This pairing type is not supported: {name}"
            ) from None

    @property
    def composite(self) -> bool:
        return self is PairingType.TYPE_A1

    @property
    def default_strength(self) -> tuple[int, int]:
        return _DEFAULT_STRENGTH[self]


@dataclass(frozen=True)
class Curve:
    """A py_ecc pairing-friendly curve; G1 carries the group elements."""

    name: str
    backend: ModuleType = field(compare=False, repr=False)
    b: int = field(compare=False)
    cofactor: int = field(default=1, compare=False)

    @property
    def order(self) -> int:
        return self.backend.curve_order

    @property
    def field_modulus(self) -> int:
        return self.backend.FQ.field_modulus


CURVES = {
    PairingType.TYPE_A: Curve("alt_bn128", optimized_bn128, b=3),
    PairingType.TYPE_E: Curve("bls12_381", optimized_bls12_381, b=4,
                              cofactor=0x396C8C005555E1568C00AAAB0000AAAB),
}

_DEFAULT_STRENGTH = {
    PairingType.TYPE_A: (254, 254),
    PairingType.TYPE_A1: (3, 160),
    PairingType.TYPE_E: (255, 381),
}


# === Groups ===

@dataclass(frozen=True)
class Group(ABC):
    """
    A cyclic group of known order.

    g and h generate the same group; nobody knows log_g(h), so
    g^m * h^r is a binding commitment. `modulus` is the base field.
    """

    pairing_type: PairingType
    param1: int
    param2: int
    order: int
    modulus: int
    g: int
    h: int

    @abstractmethod
    def exp(self, base: int, exponent: int) -> int:
        ...

    @abstractmethod
    def mul(self, *elements: int) -> int:
        ...

    @abstractmethod
    def contains(self, element: int) -> bool:
        """True for a non-identity element of the group."""

    @abstractmethod
    def pair(self, element: int, k: int = 1) -> Any:
        """e(element, k * G2)."""

    def commit(self, m: int, r: int) -> int:
        return self.mul(self.exp(self.g, m), self.exp(self.h, r))


@dataclass(frozen=True)
class CurveGroup(Group):
    """G1 of a py_ecc pairing curve."""

    curve: Curve = field(default=CURVES[PairingType.TYPE_A])

    def _point(self, element: int) -> tuple:
        c = self.curve.backend
        if element == 0:
            return c.Z1
        x, y = divmod(element, self.modulus)
        if element < 0 or x >= self.modulus:
            raise ValueError("not a curve point encoding")
        return (c.FQ(x), c.FQ(y), c.FQ.one())

    def _element(self, point: tuple) -> int:
        c = self.curve.backend
        if c.is_inf(point):
            return 0
        x, y = c.normalize(point)
        return x.n * self.modulus + y.n

    def exp(self, base: int, exponent: int) -> int:
        c = self.curve.backend
        return self._element(c.multiply(self._point(base), exponent % self.order))

    def mul(self, *elements: int) -> int:
        c = self.curve.backend
        result = c.Z1
        for element in elements:
            result = c.add(result, self._point(element))
        return self._element(result)

    def contains(self, element: int) -> bool:
        c = self.curve.backend
        if not 0 < element < self.modulus * self.modulus:
            return False
        point = self._point(element)
        if not c.is_on_curve(point, c.FQ(self.curve.b)):
            return False
        return self.curve.cofactor == 1 or c.is_inf(c.multiply(point, self.order))

    def pair(self, element: int, k: int = 1) -> Any:
        c = self.curve.backend
        return c.pairing(c.multiply(c.G2, k % self.order), self._point(element))


@dataclass(frozen=True)
class ModularGroup(Group):
    """Composite-order subgroup of Z_q*, used for A1."""

    factors: tuple[int, ...] = field(default=(), compare=False)

    def exp(self, base: int, exponent: int) -> int:
        return int(gmpy2.powmod(base, exponent % self.order, self.modulus))

    def mul(self, *elements: int) -> int:
        result = 1
        for element in elements:
            result = result * element % self.modulus
        return result

    def contains(self, element: int) -> bool:
        if not 1 < element < self.modulus:
            return False
        return gmpy2.powmod(element, self.order, self.modulus) == 1

    def pair(self, element: int, k: int = 1) -> Any:
        raise UnsupportedParameterError("type A1 groups have no pairing backend")


def restore_group(
    pairing_type: PairingType,
    param1: int,
    param2: int,
    order: int,
    modulus: int,
    g: int,
    h: int,
) -> Group:
    """
    Rebuild a group from its public parameters, e.g. from a setup snapshot.

    Raises ConfigurationError if the parameters do not describe a usable
    group of the named family.
    """
    if order < 2 or modulus <= order:
        raise ConfigurationError(f"bad group sizes: order={order:#x}, modulus={modulus:#x}")

    if pairing_type.composite:
        if (modulus - 1) % order:
            raise ConfigurationError("group order does not divide q - 1")
        group: Group = ModularGroup(pairing_type, param1, param2, order, modulus, g, h)
    else:
        curve = CURVES[pairing_type]
        if (order, modulus) != (curve.order, curve.field_modulus):
            raise ConfigurationError(f"group parameters are not those of {curve.name}")
        group = CurveGroup(pairing_type, param1, param2, order, modulus, g, h, curve)

    if not (group.contains(g) and group.contains(h)) or g == h:
        raise ConfigurationError("generators are not group elements")
    return group


@runtime_checkable
class CryptoProvider(Protocol):
    """Interface the protocol states consume."""

    def create_group(
        self,
        pairing_type: PairingType | str,
        param1: int | None = None,
        param2: int | None = None,
    ) -> Group:
        """Create a group of the requested family and strength."""
        ...

    def secure_random(self, modulus: int) -> int:
        """Uniform scalar in [0, modulus)."""
        ...

    def hash_to_scalar(self, group: Group, *parts: bytes | int | str) -> int:
        """Hash the parts into [0, group.order)."""
        ...


def _encode(part: bytes | int | str) -> bytes:
    if isinstance(part, int):
        part = part.to_bytes(max(1, (part.bit_length() + 7) // 8), "big")
    elif isinstance(part, str):
        part = part.encode("utf-8")
    return struct.pack(">I", len(part)) + part


class DefaultCryptoProvider:
    """
    Provider backed by py_ecc pairing curves (A, E), gmpy2 primes (A1),
    the secrets CSPRNG and SHA-256.

    Stateless apart from configuration; safe to share between sessions.
    """

    def __init__(self, primality_rounds: int = 32):
        self.primality_rounds = primality_rounds

    # === Group creation ===

    def create_group(
        self,
        pairing_type: PairingType | str,
        param1: int | None = None,
        param2: int | None = None,
    ) -> Group:
        if isinstance(pairing_type, str):
            pairing_type = PairingType.parse(pairing_type)
        default1, default2 = pairing_type.default_strength
        param1 = default1 if param1 is None else param1
        param2 = default2 if param2 is None else param2

        if pairing_type.composite:
            return self._composite_group(pairing_type, param1, param2)
        return self._curve_group(pairing_type, param1, param2)

    def _curve_group(self, pairing_type: PairingType, r_bits: int, q_bits: int) -> CurveGroup:
        curve = CURVES[pairing_type]
        if not (1 <= r_bits <= curve.order.bit_length()
                and 1 <= q_bits <= curve.field_modulus.bit_length()):
            raise ConfigurationError(
                f"{curve.name} offers r={curve.order.bit_length()}, "
                f"q={curve.field_modulus.bit_length()} bits; asked for ({r_bits}, {q_bits})"
            )
        c = curve.backend
        group = CurveGroup(pairing_type, r_bits, q_bits, curve.order, curve.field_modulus,
                           g=0, h=0, curve=curve)
        g = group._element(c.G1)
        return CurveGroup(pairing_type, r_bits, q_bits, curve.order, curve.field_modulus,
                          g=g, h=self._hash_to_point(group, g), curve=curve)

    def _hash_to_point(self, group: CurveGroup, g: int) -> int:
        """Try-and-increment hash of g onto G1; its discrete log is unknown."""
        c = group.curve.backend
        q = group.modulus
        counter = 0
        while True:
            x = self._digest_int(b"ppets-h", g, counter, out_bits=q.bit_length() + 64) % q
            counter += 1
            rhs = (x * x * x + group.curve.b) % q
            # both curves have q = 3 mod 4
            y = pow(rhs, (q + 1) // 4, q)
            if y * y % q != rhs:
                continue
            point = (c.FQ(x), c.FQ(y), c.FQ.one())
            if group.curve.cofactor != 1:
                point = c.multiply(point, group.curve.cofactor)
            if c.is_inf(point):
                continue
            h = group._element(point)
            if h != g:
                return h

    def _composite_group(self, pairing_type: PairingType, count: int, bits: int) -> ModularGroup:
        factors = self._distinct_primes(count, bits)
        order = prod(factors)
        modulus = self._modulus_for(order, order.bit_length() + 16)
        g = self._generator(order, modulus, factors)
        h = self._derived_generator(order, modulus, factors, g)
        return ModularGroup(pairing_type, count, bits, order, modulus, g, h,
                            factors=tuple(factors))

    def _is_prime(self, n: int) -> bool:
        return bool(gmpy2.is_prime(n, self.primality_rounds))

    def _prime(self, bits: int) -> int:
        while True:
            candidate = secrets.randbits(bits) | (1 << (bits - 1)) | 1
            if self._is_prime(candidate):
                return candidate

    def _distinct_primes(self, count: int, bits: int) -> list[int]:
        if count < 1 or bits < 8:
            raise ConfigurationError(
                f"need prime count >= 1 and prime bits >= 8, got ({count}, {bits})"
            )
        primes: list[int] = []
        while len(primes) < count:
            p = self._prime(bits)
            if p not in primes:
                primes.append(p)
        return primes

    def _modulus_for(self, order: int, bits: int) -> int:
        """Find a prime q = k * order + 1 with k even."""
        k_bits = max(2, bits - order.bit_length())
        while True:
            k = (secrets.randbits(k_bits) | (1 << (k_bits - 1))) & ~1
            q = k * order + 1
            if self._is_prime(q):
                return q

    def _has_full_order(self, element: int, order: int, modulus: int,
                        factors: list[int]) -> bool:
        if element == 1:
            return False
        return all(gmpy2.powmod(element, order // f, modulus) != 1 for f in factors)

    def _generator(self, order: int, modulus: int, factors: list[int]) -> int:
        cofactor = (modulus - 1) // order
        while True:
            base = 2 + secrets.randbelow(modulus - 3)
            g = int(gmpy2.powmod(base, cofactor, modulus))
            if self._has_full_order(g, order, modulus, factors):
                return g

    def _derived_generator(self, order: int, modulus: int, factors: list[int], g: int) -> int:
        """Second generator from hashing g; its discrete log is unknown."""
        cofactor = (modulus - 1) // order
        counter = 0
        while True:
            seed = self._digest_int(b"ppets-h", g, counter, out_bits=modulus.bit_length() + 64)
            h = int(gmpy2.powmod(seed % modulus, cofactor, modulus))
            if h != g and self._has_full_order(h, order, modulus, factors):
                return h
            counter += 1

    # === Scalars ===

    def secure_random(self, modulus: int) -> int:
        if modulus <= 0:
            raise ValueError("modulus must be positive")
        return secrets.randbelow(modulus)

    def hash_to_scalar(self, group: Group, *parts: bytes | int | str) -> int:
        return self._digest_int(*parts, out_bits=group.order.bit_length() + 128) % group.order

    def _digest_int(self, *parts: bytes | int | str, out_bits: int) -> int:
        material = b"".join(_encode(p) for p in parts)
        out = b""
        counter = 0
        while len(out) * 8 < out_bits:
            digest = hashes.Hash(hashes.SHA256())
            digest.update(struct.pack(">I", counter))
            digest.update(material)
            out += digest.finalize()
            counter += 1
        return int.from_bytes(out, "big")
