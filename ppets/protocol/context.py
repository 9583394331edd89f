"""
Shared protocol context.

One SharedContext exists per protocol session and is owned by that session's
state machine. It holds two kinds of data, kept in separate structures:

- public, wire-eligible data (WireForm): group parameters, configuration
  flags and the public keys of the server-side actors;
- local-only data: the crypto provider, the log sink, the current actor and
  the per-actor records holding secrets.

Only WireForm is ever serialised, so per-actor secrets cannot leave the peer
through the snapshot path.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, TypeVar

from ..config import SessionConfig
from ..crypto.provider import (
    CryptoProvider,
    DefaultCryptoProvider,
    Group,
    PairingType,
    restore_group,
)
from ..errors import (
    ConfigurationError,
    MalformedPayloadError,
    ProtocolError,
    RoleAccessError,
    VerificationError,
)
from ..log import LogSink, null_sink
from .data import ACTOR_DATA, DEVICE_ACTORS, SERVER_ACTORS, Actor, ActorData

PROTOCOL_VERSION = 1

T = TypeVar("T", bound=ActorData)


@dataclass(frozen=True)
class WireForm:
    """Public snapshot sent from the server to the device during Setup."""

    group: Group
    skip_verification: bool = False
    num_validations: int = 2
    public_keys: dict[Actor, int] = field(default_factory=dict)
    version: int = PROTOCOL_VERSION

    def to_bytes(self) -> bytes:
        doc = {
            "version": self.version,
            "pairing_type": self.group.pairing_type.value,
            "param1": self.group.param1,
            "param2": self.group.param2,
            "p": hex(self.group.order),
            "q": hex(self.group.modulus),
            "g": hex(self.group.g),
            "h": hex(self.group.h),
            "skip_verification": self.skip_verification,
            "num_validations": self.num_validations,
            "public_keys": {a.value: hex(y) for a, y in sorted(
                self.public_keys.items(), key=lambda kv: kv[0].value)},
        }
        return json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> WireForm:
        try:
            doc: dict[str, Any] = json.loads(data.decode("utf-8"))
            version = int(doc["version"])
            if version != PROTOCOL_VERSION:
                raise MalformedPayloadError(
                    f"snapshot version {version}, expected {PROTOCOL_VERSION}"
                )
            group = restore_group(
                pairing_type=PairingType.parse(doc["pairing_type"]),
                param1=int(doc["param1"]),
                param2=int(doc["param2"]),
                order=int(doc["p"], 16),
                modulus=int(doc["q"], 16),
                g=int(doc["g"], 16),
                h=int(doc["h"], 16),
            )
            public_keys = {Actor(a): int(y, 16) for a, y in doc.get("public_keys", {}).items()}
            return cls(
                group=group,
                skip_verification=bool(doc["skip_verification"]),
                num_validations=int(doc["num_validations"]),
                public_keys=public_keys,
                version=version,
            )
        except MalformedPayloadError:
            raise
        except (ValueError, KeyError, TypeError, AttributeError, ConfigurationError) as e:
            raise MalformedPayloadError(f"bad setup snapshot: {e!r}") from e


class SharedContext:
    """Per-session store of public parameters, configuration and actor data."""

    def __init__(
        self,
        local_actors: Iterable[Actor],
        config: SessionConfig | None = None,
        crypto: CryptoProvider | None = None,
        logger: LogSink | None = None,
    ):
        self.local_actors = frozenset(local_actors)
        self.config = config or SessionConfig()
        self.crypto = crypto or DefaultCryptoProvider()
        self.log = logger or null_sink

        self.group: Group | None = None
        self.public_keys: dict[Actor, int] = {}
        self.actor: Actor | None = None
        self.skipped_checks: list[str] = []
        self._data: dict[Actor, ActorData] = {}

    @classmethod
    def server(cls, **kwargs) -> SharedContext:
        return cls(SERVER_ACTORS, **kwargs)

    @classmethod
    def device(cls, **kwargs) -> SharedContext:
        return cls(DEVICE_ACTORS, **kwargs)

    # === Group ===

    @property
    def p(self) -> int:
        """Group order."""
        return self.require_group().order

    def require_group(self) -> Group:
        if self.group is None:
            raise ProtocolError("no group parameters established yet")
        return self.group

    # === Roles ===

    def act_as(self, actor: Actor, kind: type[T] | None = None) -> T:
        """Switch the current role and return its record."""
        record = self.data_for(actor, kind)
        self.actor = actor
        return record

    def public_key(self, actor: Actor) -> int:
        try:
            return self.public_keys[actor]
        except KeyError:
            raise ProtocolError(f"no public key for {actor.value}") from None

    @property
    def data(self) -> ActorData:
        if self.actor is None:
            raise RoleAccessError("no current actor; call act_as() first")
        return self.data_for(self.actor)

    def data_for(self, actor: Actor, kind: type[T] | None = None) -> T:
        if actor not in self.local_actors:
            raise RoleAccessError(f"this peer does not play {actor.value}")
        record = self._data.get(actor)
        if record is None:
            record = self._data[actor] = ACTOR_DATA[actor]()
        if kind is not None and not isinstance(record, kind):
            raise RoleAccessError(f"{actor.value} data is not {kind.__name__}")
        return record  # type: ignore[return-value]

    def has_data(self, actor: Actor) -> bool:
        return actor in self._data

    # === Wire form ===

    def wire_form(self) -> WireForm:
        return WireForm(
            group=self.require_group(),
            skip_verification=self.config.skip_verification,
            num_validations=self.config.num_validations,
            public_keys=dict(self.public_keys),
        )

    def to_wire(self) -> bytes:
        return self.wire_form().to_bytes()

    @classmethod
    def from_wire(cls, data: bytes, local_actors: Iterable[Actor] = DEVICE_ACTORS,
                  **kwargs) -> SharedContext:
        context = cls(local_actors, **kwargs)
        context.load_wire(data)
        return context

    def load_wire(self, data: bytes) -> None:
        """Replace the public fields from a snapshot and drop sender-only data."""
        wire = WireForm.from_bytes(data)
        self.group = wire.group
        self.public_keys = dict(wire.public_keys)
        self.config = replace(
            self.config,
            skip_verification=wire.skip_verification,
            num_validations=wire.num_validations,
            pairing_type=wire.group.pairing_type,
            param1=wire.group.param1,
            param2=wire.group.param2,
        )
        self.prune_local_only()

    def prune_local_only(self) -> None:
        """Drop every actor record this peer does not own."""
        for actor in list(self._data):
            if actor not in self.local_actors:
                del self._data[actor]
        if self.actor is not None and self.actor not in self.local_actors:
            self.actor = None

    def discard(self) -> None:
        """End of session: forget all actor data."""
        self._data.clear()
        self.actor = None

    # === Verification policy ===

    def require_verified(self, ok: bool, check: str) -> None:
        """
        Enforce a verification decision.

        With skip_verification set a failed check is logged as SKIPPED and
        recorded instead of raising, so it never reads like a genuine pass.
        """
        if ok:
            return
        if self.config.skip_verification:
            self.skipped_checks.append(check)
            self.log("warn", f"[Verify] {check} FAILED, SKIPPED (skip_verification enabled)")
            return
        raise VerificationError(check)
