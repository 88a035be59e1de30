"""Protocols for the collaborators the L402 middleware delegates to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pymacaroons import Macaroon
from starlette.requests import Request

if TYPE_CHECKING:
    from l402_gate.identifier import Identifier
    from l402_gate.rejection import Rejection


@runtime_checkable
class Challenge(Protocol):
    """A payment request a rejected client must settle before retrying."""

    def render(self) -> str:
        """Render the challenge as ``WWW-Authenticate`` parameters, e.g. ``invoice="lnbc..."``."""
        ...


@dataclass(frozen=True)
class InvoiceChallenge:
    """A challenge backed by a BOLT 11 Lightning invoice."""

    invoice: str

    def render(self) -> str:
        return f'invoice="{self.invoice}"'


@runtime_checkable
class Minter(Protocol):
    """Issues fresh credentials together with the challenge that unlocks them."""

    async def mint_with_challenge(self, request: Request) -> tuple[str, Challenge]:
        """Mint a credential for ``request``.

        Args:
            request: The request being challenged.

        Returns:
            The base64-encoded credential and the challenge whose payment
            preimage unlocks it.

        Raises:
            Exception: Any failure to mint; it is reported as an internal error.
        """
        ...


@runtime_checkable
class AccessAuthority(Protocol):
    """Verifies credential signatures and caveats and decides per-resource access."""

    async def approve_access(
        self,
        request: Request,
        credentials: dict[Identifier, Macaroon],
    ) -> Rejection | None:
        """Approve or reject ``request`` given its decoded credentials.

        Returns:
            None to grant access, or the rejection to challenge the client with.
        """
        ...
