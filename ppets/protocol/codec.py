"""
Payload codec: a list of length-prefixed byte fields.

Each field is a 2-byte big-endian length followed by the field bytes.
Integers are minimal big-endian, strings UTF-8, dicts canonical JSON.
"""
from __future__ import annotations

import json
import struct
from typing import Any

from ..errors import MalformedPayloadError

_LEN = struct.Struct(">H")
MAX_FIELD = 0xFFFF

Field = bytes | int | str | dict


def int_to_bytes(value: int) -> bytes:
    if value < 0:
        raise ValueError("negative integers are not encodable")
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


def int_from_bytes(data: bytes) -> int:
    return int.from_bytes(data, "big")


def json_bytes(value: dict[str, Any]) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _field_bytes(field: Field) -> bytes:
    if isinstance(field, bytes):
        return field
    if isinstance(field, bool):
        raise TypeError("booleans are not a field type")
    if isinstance(field, int):
        return int_to_bytes(field)
    if isinstance(field, str):
        return field.encode("utf-8")
    if isinstance(field, dict):
        return json_bytes(field)
    raise TypeError(f"unsupported field type: {type(field).__name__}")


def pack_fields(*fields: Field) -> bytes:
    out = bytearray()
    for field in fields:
        raw = _field_bytes(field)
        if len(raw) > MAX_FIELD:
            raise MalformedPayloadError(f"field too long ({len(raw)} bytes, max {MAX_FIELD})")
        out += _LEN.pack(len(raw))
        out += raw
    return bytes(out)


class Fields:
    """Typed, ordered reader over an unpacked payload."""

    def __init__(self, data: bytes | None, expected: int):
        if data is None:
            raise MalformedPayloadError("payload missing")
        self._fields = unpack_fields(data)
        if len(self._fields) != expected:
            raise MalformedPayloadError(
                f"expected {expected} fields, got {len(self._fields)}"
            )
        self._pos = 0

    def raw(self) -> bytes:
        field = self._fields[self._pos]
        self._pos += 1
        return field

    def integer(self) -> int:
        return int_from_bytes(self.raw())

    def text(self) -> str:
        try:
            return self.raw().decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedPayloadError(f"bad text field: {e}") from e

    def mapping(self) -> dict[str, Any]:
        try:
            value = json.loads(self.raw())
        except ValueError as e:
            raise MalformedPayloadError(f"bad json field: {e}") from e
        if not isinstance(value, dict):
            raise MalformedPayloadError("json field is not an object")
        return value


def unpack_fields(data: bytes) -> list[bytes]:
    fields: list[bytes] = []
    pos = 0
    while pos < len(data):
        if pos + _LEN.size > len(data):
            raise MalformedPayloadError("truncated field length")
        (length,) = _LEN.unpack_from(data, pos)
        pos += _LEN.size
        if pos + length > len(data):
            raise MalformedPayloadError("truncated field")
        fields.append(data[pos:pos + length])
        pos += length
    return fields
