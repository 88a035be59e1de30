"""Tests for the binary identifier codec."""

from __future__ import annotations

import pytest

from l402_gate.errors import UnknownVersionError
from l402_gate.identifier import IDENTIFIER_SIZE, Identifier, decode_identifier, encode_identifier
from tests.conftest import PAYMENT_HASH, make_identifier


class TestEncodeIdentifier:
    def test_layout(self):
        identifier = Identifier(version=0, payment_hash=b"\x01" * 32, id=b"\x02" * 32)
        encoded = encode_identifier(identifier)
        assert len(encoded) == IDENTIFIER_SIZE == 66
        assert encoded[:2] == b"\x00\x00"
        assert encoded[2:34] == b"\x01" * 32
        assert encoded[34:] == b"\x02" * 32

    def test_unknown_version_rejected(self):
        identifier = Identifier(version=1, payment_hash=PAYMENT_HASH, id=bytes(32))
        with pytest.raises(UnknownVersionError, match="unknown L402 version: 1"):
            encode_identifier(identifier)

    @pytest.mark.parametrize("field", ["payment_hash", "id"])
    def test_wrong_block_size_rejected(self, field: str):
        kwargs = {"version": 0, "payment_hash": PAYMENT_HASH, "id": bytes(32)}
        kwargs[field] = bytes(31)
        with pytest.raises(ValueError, match=field):
            Identifier(**kwargs)


class TestDecodeIdentifier:
    def test_round_trip(self):
        identifier = make_identifier(7)
        assert decode_identifier(encode_identifier(identifier)) == identifier

    def test_go_layout_fixture(self):
        data = bytes([0, 0, 1] + [0] * 30 + [2, 3] + [0] * 30 + [4])
        identifier = decode_identifier(data)
        assert identifier.version == 0
        assert identifier.payment_hash == bytes([1] + [0] * 30 + [2])
        assert identifier.id == bytes([3] + [0] * 30 + [4])

    @pytest.mark.parametrize("size", [0, 2, 65, 67, 132])
    def test_wrong_length_rejected(self, size: int):
        with pytest.raises(UnknownVersionError):
            decode_identifier(bytes(size))

    def test_non_zero_version_rejected(self):
        data = b"\x00\x01" + bytes(64)
        with pytest.raises(UnknownVersionError, match="unknown L402 version: 1"):
            decode_identifier(data)

    def test_identifiers_are_hashable_map_keys(self):
        a = make_identifier(1)
        b = decode_identifier(encode_identifier(make_identifier(1)))
        assert {a: "first", b: "second"} == {a: "second"}
