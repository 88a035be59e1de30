"""Fixed-size binary codec for the identifier embedded in every L402 macaroon.

Layout (66 bytes, big-endian)::

    [u16 version][32-byte payment hash][32-byte id]

Only version 0 exists; any other version is rejected both ways.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from l402_gate.errors import UnknownVersionError

BLOCK_SIZE = hashlib.sha256().digest_size

_LAYOUT = struct.Struct(f">H{BLOCK_SIZE}s{BLOCK_SIZE}s")
IDENTIFIER_SIZE = _LAYOUT.size

SUPPORTED_VERSION = 0


@dataclass(frozen=True)
class Identifier:
    """Correlates a macaroon with the payment that unlocks it.

    Attributes:
        version: Identifier format version, currently always 0.
        payment_hash: sha256 of the payment preimage.
        id: Opaque per-macaroon id chosen by the minter.
    """

    version: int
    payment_hash: bytes
    id: bytes

    def __post_init__(self) -> None:
        if len(self.payment_hash) != BLOCK_SIZE:
            raise ValueError(f"payment_hash must be {BLOCK_SIZE} bytes, got {len(self.payment_hash)}")
        if len(self.id) != BLOCK_SIZE:
            raise ValueError(f"id must be {BLOCK_SIZE} bytes, got {len(self.id)}")


def encode_identifier(identifier: Identifier) -> bytes:
    """Serialize ``identifier`` to its 66-byte wire form."""
    if identifier.version != SUPPORTED_VERSION:
        raise UnknownVersionError(f"{UnknownVersionError.default_message}: {identifier.version}")
    return _LAYOUT.pack(identifier.version, identifier.payment_hash, identifier.id)


def decode_identifier(data: bytes) -> Identifier:
    """Parse a 66-byte wire identifier.

    Raises:
        UnknownVersionError: On a wrong length or a non-zero version field.
    """
    if len(data) != IDENTIFIER_SIZE:
        raise UnknownVersionError()
    version, payment_hash, identifier_id = _LAYOUT.unpack(data)
    if version != SUPPORTED_VERSION:
        raise UnknownVersionError(f"{UnknownVersionError.default_message}: {version}")
    return Identifier(version=version, payment_hash=payment_hash, id=identifier_id)
