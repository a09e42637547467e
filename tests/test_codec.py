from __future__ import annotations

import base64

import pytest

from capturectl.core.codec import decode_packets, encode_packets, server_info_from_dict
from capturectl.core.errors import FixtureDecodeError
from capturectl.core.model import ServerInfo


def test_packets_survive_arbitrary_bytes() -> None:
    packets = [b"", b"\x00\xff\xfe", bytes(range(256)), b"\xff\xff\xff\xffTSource Engine Query\x00"]
    assert decode_packets(encode_packets(packets)) == tuple(packets)


def test_encoded_packets_are_ascii_text() -> None:
    encoded = encode_packets([b"\x00\x01"])
    assert encoded.isascii()


@pytest.mark.parametrize(
    "encoded",
    [
        "not base64!",
        base64.b64encode(b"XX").decode(),
        base64.b64encode(b"NOPE\x01\x00\x00\x00\x00").decode(),
        base64.b64encode(b"CFXP\x09\x00\x00\x00\x00").decode(),
        base64.b64encode(b"CFXP\x01\x00\x00\x00\x01\x00\x00\x00\x05ab").decode(),
        base64.b64encode(b"CFXP\x01\x00\x00\x00\x00extra").decode(),
    ],
)
def test_malformed_packet_data_rejected(encoded: str) -> None:
    with pytest.raises(FixtureDecodeError):
        decode_packets(encoded)


def test_server_info_fields_fall_back_to_defaults() -> None:
    info = server_info_from_dict(
        {
            "address": "10.0.0.1",
            "queryport": "27015",
            "online": "yes",
            "numplayers": 3,
            "maxplayers": True,
            "rules": ["not", "a", "mapping"],
            "players": [{"name": "alice"}],
            "password": False,
            "motd": 12,
        }
    )
    assert info.address == "10.0.0.1"
    assert info.queryport is None
    assert info.online is False
    assert info.numplayers == 3
    assert info.maxplayers == 0
    assert info.rules == {}
    assert info.players == ({"name": "alice"},)
    assert info.password is False
    assert info.motd is None


def test_server_info_from_non_mapping_is_default() -> None:
    assert server_info_from_dict(["nope"]) == ServerInfo()
    assert server_info_from_dict(None) == ServerInfo()
