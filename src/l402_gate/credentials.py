"""Wire codec for the credential list carried in an L402 Authorization header.

A credential list is the concatenation of binary-encoded macaroons, base64
encoded as a whole. pymacaroons owns the codec for a single macaroon; this
module frames the list and maps every macaroon to its :class:`Identifier`.
"""

from __future__ import annotations

import base64
import logging

from pymacaroons import Macaroon
from pymacaroons.exceptions import MacaroonException
from pymacaroons.serializers import BinarySerializer

from l402_gate.errors import (
    CredentialDecodeError,
    CredentialEncodeError,
    EmptyCredentialDataError,
    L402Error,
)
from l402_gate.identifier import Identifier, decode_identifier

logger = logging.getLogger(__name__)

_serializer = BinarySerializer()

# Binary macaroon v2 field types
_V2_MARKER = 0x02
_FIELD_EOS = 0x00
_FIELD_SIGNATURE = 0x06

# Binary macaroon v1 packets: 4 hex digits of total packet length, then "key value\n"
_V1_HEADER_SIZE = 4
_V1_SIGNATURE_KEY = b"signature"


def identifier_of(macaroon: Macaroon) -> Identifier:
    """Decode the L402 identifier embedded in ``macaroon``."""
    return decode_identifier(macaroon.identifier_bytes)


def decode_credentials(data: str) -> dict[Identifier, Macaroon]:
    """Decode a base64 credential list into macaroons keyed by identifier.

    Clients that comma-join several base64 macaroons instead of sending one
    binary list are tolerated on a best-effort basis: when the payload is not
    valid base64, it is split on commas and each blob is decoded in turn.

    Raises:
        EmptyCredentialDataError: ``data`` is empty or holds no macaroon.
        CredentialDecodeError: The payload is not base64, a macaroon is
            malformed, or an identifier cannot be decoded.
    """
    if not data:
        raise EmptyCredentialDataError()

    raw = _b64decode_lenient(data)
    chunks = _split_binary_list(raw)
    if not chunks:
        raise EmptyCredentialDataError()

    credentials: dict[Identifier, Macaroon] = {}
    for index, chunk in enumerate(chunks):
        try:
            macaroon = _serializer.deserialize(base64.urlsafe_b64encode(chunk).rstrip(b"=").decode("ascii"))
            identifier = identifier_of(macaroon)
        except (L402Error, MacaroonException, ValueError, IndexError) as exc:
            raise CredentialDecodeError(f"index {index}: {exc}") from exc
        if identifier in credentials:
            logger.warning("Duplicate credential identifier at index %d; keeping the later one", index)
        credentials[identifier] = macaroon
    return credentials


def encode_credentials(*macaroons: Macaroon) -> str:
    """Encode ``macaroons`` as one base64 binary credential list.

    Raises:
        EmptyCredentialDataError: No macaroon was given.
        CredentialEncodeError: A macaroon could not be serialized.
    """
    if not macaroons:
        raise EmptyCredentialDataError("can't encode an empty credential list")

    parts: list[bytes] = []
    for index, macaroon in enumerate(macaroons):
        try:
            serialized = _serializer.serialize(macaroon)
        except (MacaroonException, ValueError, TypeError, AttributeError) as exc:
            raise CredentialEncodeError(f"index {index}: {exc}") from exc
        parts.append(_urlsafe_b64decode(serialized))
    return base64.b64encode(b"".join(parts)).decode("ascii")


def _urlsafe_b64decode(data: str | bytes) -> bytes:
    raw = data.encode("ascii") if isinstance(data, str) else data
    return base64.urlsafe_b64decode(raw + b"=" * (-len(raw) % 4))


def _b64decode_lenient(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except ValueError as exc:  # binascii.Error, or non-ASCII input
        original = exc

    if "," in data:
        # Each comma-separated blob is a base64 list of its own, possibly padded
        try:
            return b"".join(base64.b64decode(part, validate=True) for part in data.split(",") if part)
        except ValueError:
            logger.debug("Comma-separated credential data is not base64 either")
    raise CredentialDecodeError(f"{CredentialDecodeError.default_message}: {original}") from original


def _split_binary_list(raw: bytes) -> list[bytes]:
    """Split concatenated binary macaroons into one chunk per macaroon."""
    chunks: list[bytes] = []
    pos = 0
    while pos < len(raw):
        start = pos
        try:
            if raw[pos] == _V2_MARKER:
                pos = _skip_v2(raw, pos + 1)
            else:
                pos = _skip_v1(raw, pos)
        except (IndexError, ValueError) as exc:
            raise CredentialDecodeError(f"index {len(chunks)}: malformed macaroon: {exc}") from exc
        chunks.append(raw[start:pos])
    return chunks


def _skip_v2(raw: bytes, pos: int) -> int:
    # Header section, then caveat sections until an empty one, then the signature.
    pos = _skip_v2_section(raw, pos)
    while raw[pos] != _FIELD_EOS:
        pos = _skip_v2_section(raw, pos)
    pos += 1
    if raw[pos] != _FIELD_SIGNATURE:
        raise ValueError("expected signature field")
    return _skip_v2_field(raw, pos)


def _skip_v2_section(raw: bytes, pos: int) -> int:
    while raw[pos] != _FIELD_EOS:
        pos = _skip_v2_field(raw, pos)
    return pos + 1


def _skip_v2_field(raw: bytes, pos: int) -> int:
    pos += 1  # field type
    length, shift = 0, 0
    while True:
        byte = raw[pos]
        pos += 1
        length |= (byte & 0x7F) << shift
        if not byte & 0x80:
            break
        shift += 7
    end = pos + length
    if end > len(raw):
        raise IndexError("field exceeds data")
    return end


def _skip_v1(raw: bytes, pos: int) -> int:
    while True:
        header = raw[pos : pos + _V1_HEADER_SIZE]
        if len(header) < _V1_HEADER_SIZE:
            raise IndexError("truncated packet header")
        size = int(header.decode("ascii"), 16)
        if size <= _V1_HEADER_SIZE or pos + size > len(raw):
            raise IndexError("packet exceeds data")
        key = raw[pos + _V1_HEADER_SIZE : pos + size].split(b" ", 1)[0]
        pos += size
        if key == _V1_SIGNATURE_KEY:
            return pos
