"""Binary-safe packet encoding and tolerant ServerInfo decoding."""

from __future__ import annotations

import base64
import binascii
import json
import struct
from collections.abc import Iterable, Mapping
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import validators

from capturectl.core.errors import FixtureDecodeError
from capturectl.core.model import ServerInfo

PACKET_MAGIC = b"CFXP"
PACKET_FORMAT_VERSION = 1
_HEADER = struct.Struct(">4sBI")
_LENGTH = struct.Struct(">I")
_SEQUENCE_FIELDS = frozenset({"players", "channels"})


def encode_packets(packets: Iterable[bytes]) -> str:
    """Frame packets as length-prefixed blobs and return them as base64 text."""
    items = [bytes(packet) for packet in packets]
    chunks = [_HEADER.pack(PACKET_MAGIC, PACKET_FORMAT_VERSION, len(items))]
    for packet in items:
        chunks.append(_LENGTH.pack(len(packet)))
        chunks.append(packet)
    return base64.b64encode(b"".join(chunks)).decode("ascii")


def decode_packets(encoded: str) -> tuple[bytes, ...]:
    try:
        blob = base64.b64decode(encoded.encode("ascii"), validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise FixtureDecodeError(f"Packet data is not valid base64: {exc}") from exc

    if len(blob) < _HEADER.size:
        raise FixtureDecodeError("Packet data is shorter than its header")
    magic, version, count = _HEADER.unpack_from(blob, 0)
    if magic != PACKET_MAGIC:
        raise FixtureDecodeError("Packet data has an unknown magic marker")
    if version != PACKET_FORMAT_VERSION:
        raise FixtureDecodeError(f"Unsupported packet format version {version}")

    offset = _HEADER.size
    packets: list[bytes] = []
    for index in range(count):
        if offset + _LENGTH.size > len(blob):
            raise FixtureDecodeError(f"Packet {index} length prefix is truncated")
        (length,) = _LENGTH.unpack_from(blob, offset)
        offset += _LENGTH.size
        if offset + length > len(blob):
            raise FixtureDecodeError(f"Packet {index} body is truncated")
        packets.append(blob[offset : offset + length])
        offset += length

    if offset != len(blob):
        raise FixtureDecodeError("Packet data has trailing bytes")
    return tuple(packets)


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    schema_text = resources.files("capturectl.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validators.validator_for(schema).check_schema(schema)
    return schema


def schema_validator(name: str) -> Any:
    schema = load_schema(name)
    return validators.validator_for(schema)(schema)


@lru_cache(maxsize=None)
def _field_validators() -> dict[str, tuple[Any, Any]]:
    schema = load_schema("server_info.schema.json")
    validator_cls = validators.validator_for(schema)
    return {
        name: (validator_cls(field_schema), field_schema.get("default"))
        for name, field_schema in schema["properties"].items()
    }


def server_info_from_dict(data: object) -> ServerInfo:
    """Build a ServerInfo, replacing any field that fails its type check.

    Missing fields and fields with the wrong type take the field's default;
    nothing here raises for bad input.
    """
    if not isinstance(data, Mapping):
        return ServerInfo()

    values: dict[str, Any] = {}
    for name, (validator, default) in _field_validators().items():
        value = data.get(name, default)
        if not validator.is_valid(value):
            value = default
        if name in _SEQUENCE_FIELDS:
            value = tuple(value)
        elif isinstance(value, dict):
            value = dict(value)
        values[name] = value
    return ServerInfo(**values)
