"""
Session configuration.

Parameters arrive as an ordered list of strings, each optional:

    [0] skip_verification  always pass verification tests ("false")
    [1] num_validations    times a ticket is validated to provoke double spend (2)
    [2] pairing family     "A" | "A1" | "E" ("A")
    [3] strength 1         r bits (A/E) or number of primes (A1)
    [4] strength 2         q bits (A/E) or size of each prime (A1)

Scenario files are YAML and wrap the same list for a complete run.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .crypto.provider import PairingType
from .errors import ConfigurationError


@dataclass(frozen=True)
class SessionConfig:
    skip_verification: bool = False
    num_validations: int = 2
    pairing_type: PairingType = PairingType.TYPE_A
    param1: int = PairingType.TYPE_A.default_strength[0]
    param2: int = PairingType.TYPE_A.default_strength[1]

    # === Family-specific views of the strength slots ===

    @property
    def r_bits(self) -> int:
        self._require(composite=False)
        return self.param1

    @property
    def q_bits(self) -> int:
        self._require(composite=False)
        return self.param2

    @property
    def prime_count(self) -> int:
        self._require(composite=True)
        return self.param1

    @property
    def prime_bits(self) -> int:
        self._require(composite=True)
        return self.param2

    def _require(self, composite: bool) -> None:
        if self.pairing_type.composite != composite:
            raise ConfigurationError(
                f"field not meaningful for pairing type {self.pairing_type.value}"
            )

    def describe(self) -> str:
        if self.pairing_type.composite:
            return f"type A1 ({self.param1} primes of {self.param2} bits)"
        return f"type {self.pairing_type.value} (r={self.param1}, q={self.param2})"


def _parse_int(name: str, value: str, minimum: int) -> int:
    try:
        number = int(value.strip())
    except ValueError:
        raise ConfigurationError(f"{name} is not an integer: {value!r}") from None
    if number < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {number}")
    return number


def parse_parameters(parameters: list[str], current: SessionConfig | None = None) -> SessionConfig:
    """
    Build a new SessionConfig from the positional parameter list.

    Raises ConfigurationError (UnsupportedParameterError for an unknown
    family) without touching `current`; callers keep the old value.
    """
    config = current or SessionConfig()

    if len(parameters) > 0:
        config = replace(config, skip_verification=parameters[0].strip().lower() == "true")

    if len(parameters) > 1:
        config = replace(config, num_validations=_parse_int("num_validations", parameters[1], 1))

    if len(parameters) > 2:
        pairing_type = PairingType.parse(parameters[2])
        param1, param2 = pairing_type.default_strength
        config = replace(config, pairing_type=pairing_type, param1=param1, param2=param2)

    if len(parameters) > 3:
        config = replace(config, param1=_parse_int("strength parameter 1", parameters[3], 1))

    if len(parameters) > 4:
        config = replace(config, param2=_parse_int("strength parameter 2", parameters[4], 1))

    return config


# === Scenario files ===

@dataclass
class Scenario:
    protocol: str
    parameters: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)
    timeout_ms: int = 0


def load_scenario(path: str | Path) -> Scenario:
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: scenario must be a mapping")
    protocol = raw.get("protocol")
    if not protocol:
        raise ConfigurationError(f"{path}: scenario must name a 'protocol'")

    return Scenario(
        protocol=str(protocol),
        parameters=[str(p).lower() if isinstance(p, bool) else str(p)
                    for p in raw.get("parameters") or []],
        attributes=dict(raw.get("attributes") or {}),
        timeout_ms=int(raw.get("timeout_ms", 0)),
    )
