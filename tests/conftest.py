"""Shared fixtures for l402-gate tests."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any

import pytest
from pymacaroons import Macaroon
from pymacaroons.macaroon import MACAROON_V2

from l402_gate.identifier import Identifier, encode_identifier
from l402_gate.protocol import Challenge, InvoiceChallenge
from l402_gate.rejection import Rejection

ROOT_KEY = "test-root-key"
LOCATION = "https://api.example.com"

PREIMAGE = bytes(range(32))
PREIMAGE_HEX = PREIMAGE.hex()
PAYMENT_HASH = hashlib.sha256(PREIMAGE).digest()


def make_identifier(id_byte: int, payment_hash: bytes = PAYMENT_HASH) -> Identifier:
    return Identifier(version=0, payment_hash=payment_hash, id=bytes([id_byte]) * 32)


def make_macaroon(
    id_byte: int = 1,
    payment_hash: bytes = PAYMENT_HASH,
    key: str = ROOT_KEY,
    caveats: tuple[str, ...] = (),
) -> Macaroon:
    macaroon = Macaroon(
        location=LOCATION,
        identifier=encode_identifier(make_identifier(id_byte, payment_hash)),
        key=key,
        version=MACAROON_V2,
    )
    for caveat in caveats:
        macaroon.add_first_party_caveat(caveat)
    return macaroon


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeMinter:
    """Minter returning a fixed credential and invoice, or raising ``error``."""

    credential: str = "bWFjYXJvb24="
    challenge: Challenge = field(default_factory=lambda: InvoiceChallenge("lnbcrt1fake"))
    error: Exception | None = None
    calls: int = 0

    async def mint_with_challenge(self, request: Any) -> tuple[str, Challenge]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.credential, self.challenge


@dataclass
class FakeAuthority:
    """Authority returning a fixed decision and recording what it was asked."""

    rejection: Rejection | None = None
    seen: list[dict[Identifier, Macaroon]] = field(default_factory=list)

    async def approve_access(self, request: Any, credentials: dict[Identifier, Macaroon]) -> Rejection | None:
        self.seen.append(credentials)
        return self.rejection


class SpyApp:
    """ASGI app recording the scopes it is called with and replying ``status_code``."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.scopes: list[dict[str, Any]] = []

    @property
    def called(self) -> bool:
        return bool(self.scopes)

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        self.scopes.append(scope)
        await send({"type": "http.response.start", "status": self.status_code, "headers": []})
        await send({"type": "http.response.body", "body": b""})


class Capture:
    """Collects ASGI messages sent by an app under test."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def status(self) -> int:
        return self.messages[0]["status"]

    @property
    def body(self) -> str:
        return b"".join(m.get("body", b"") for m in self.messages[1:]).decode()

    def header(self, name: str) -> list[str]:
        wanted = name.lower().encode("latin-1")
        return [v.decode("latin-1") for k, v in self.messages[0]["headers"] if k.lower() == wanted]


def build_scope(
    path: str = "/protected",
    headers: list[tuple[bytes, bytes]] | None = None,
    scope_type: str = "http",
) -> dict[str, Any]:
    return {
        "type": scope_type,
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": headers or [],
    }


def l402_header(credential: str, preimage_hex: str = PREIMAGE_HEX) -> tuple[bytes, bytes]:
    return (b"authorization", f"L402 {credential}:{preimage_hex}".encode("latin-1"))


async def noop_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@pytest.fixture
def capture() -> Capture:
    return Capture()


@pytest.fixture
def minter() -> FakeMinter:
    return FakeMinter()


@pytest.fixture
def authority() -> FakeAuthority:
    return FakeAuthority()
