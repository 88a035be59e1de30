"""ASGI middleware gating an application behind L402 authentication."""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from pymacaroons import Macaroon
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from l402_gate.authenticator import ChallengeIssuer
from l402_gate.credentials import decode_credentials
from l402_gate.errors import (
    InvalidCredentialError,
    InvalidPreimageError,
    L402Error,
    PaymentRequiredError,
    default_error_handler,
    wrap,
)
from l402_gate.identifier import BLOCK_SIZE, Identifier
from l402_gate.protocol import AccessAuthority, Minter
from l402_gate.rejection import Rejection
from l402_gate.state import CREDENTIALS_KEY, REJECTION_KEY, with_state

logger = logging.getLogger(__name__)

# L402 <credential>:<hex preimage>
AUTHORIZATION_PATTERN = re.compile(rf"L402 ([^:]+?):([a-f0-9]{{{BLOCK_SIZE * 2}}})")


class Route(enum.Enum):
    """Where a rejected request is sent."""

    AUTHENTICATE = "authenticate"  # client may retry after a new challenge
    ERROR = "error"  # protocol or client fault


@dataclass(frozen=True)
class Approved:
    credentials: dict[Identifier, Macaroon]


@dataclass(frozen=True)
class Rejected:
    rejection: Rejection
    route: Route
    credentials: dict[Identifier, Macaroon] | None = None


Outcome = Approved | Rejected


def find_authorization(headers: list[str]) -> tuple[str, str] | None:
    """Return ``(credential, preimage_hex)`` from the first L402 Authorization value."""
    for value in headers:
        match = AUTHORIZATION_PATTERN.search(value)
        if match is not None:
            return match.group(1), match.group(2)
    return None


def validate_preimage(credentials: dict[Identifier, Macaroon], preimage_hex: str) -> bool:
    """Check that the preimage hashes to the payment hash of every credential."""
    preimage_hash = hashlib.sha256(bytes.fromhex(preimage_hex)).digest()
    return all(hmac.compare_digest(identifier.payment_hash, preimage_hash) for identifier in credentials)


class L402Middleware:
    """ASGI middleware that authenticates requests with L402 credentials.

    Each HTTP request runs through one pipeline and ends in exactly one place:
    the wrapped app when access is approved, ``authenticator`` when the client
    may pay or retry, or ``error_handler`` for malformed requests. Approved
    credentials are available downstream through
    :func:`l402_gate.state.get_credentials`.

    Args:
        app: The ASGI application to protect.
        minter: Issues credentials and challenges for 402 responses.
        authority: Decides whether valid credentials grant access.
        authenticator: ASGI app answering recoverable rejections.
            Defaults to a :class:`ChallengeIssuer` built from ``minter``.
        error_handler: ASGI app answering terminal rejections.
            Defaults to :func:`l402_gate.errors.default_error_handler`.
        exempt_paths: Exact paths that bypass authentication.
        exempt_prefixes: Path prefixes that bypass authentication.
    """

    def __init__(
        self,
        app: ASGIApp,
        minter: Minter,
        authority: AccessAuthority,
        *,
        authenticator: ASGIApp | None = None,
        error_handler: ASGIApp | None = None,
        exempt_paths: set[str] | None = None,
        exempt_prefixes: set[str] | None = None,
    ) -> None:
        if not isinstance(authority, AccessAuthority):
            raise ValueError(f"authority must implement approve_access(), got {type(authority).__name__}")
        if exempt_prefixes and "" in exempt_prefixes:
            raise ValueError("exempt prefixes must not be empty")

        self._app = app
        self._authority = authority
        self._error_handler = error_handler or default_error_handler
        self._authenticator = authenticator or ChallengeIssuer(minter, self._error_handler)
        self._exempt_paths = exempt_paths or set()
        self._exempt_prefixes = exempt_prefixes or set()

    def _is_exempt(self, path: str) -> bool:
        if path in self._exempt_paths:
            return True
        return any(path.startswith(prefix) for prefix in self._exempt_prefixes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._is_exempt(scope.get("path", "")):
            await self._app(scope, receive, send)
            return

        outcome = await self.authenticate(Request(scope, receive))

        if isinstance(outcome, Approved):
            await self._app(with_state(scope, **{CREDENTIALS_KEY: outcome.credentials}), receive, send)
            return

        state: dict[str, Any] = {REJECTION_KEY: outcome.rejection}
        if outcome.credentials is not None:
            state[CREDENTIALS_KEY] = outcome.credentials
        handler = self._authenticator if outcome.route is Route.AUTHENTICATE else self._error_handler
        logger.debug("Rejected %s (%s): %s", scope.get("path", ""), outcome.route.value, outcome.rejection.message)
        await handler(with_state(scope, **state), receive, send)

    async def authenticate(self, request: Request) -> Outcome:
        """Run the L402 checks for ``request`` and decide where it goes."""
        found = find_authorization(request.headers.getlist("authorization"))
        if found is None:
            return Rejected(Rejection(PaymentRequiredError()), Route.AUTHENTICATE)
        credential, preimage_hex = found

        try:
            credentials = decode_credentials(credential)
        except L402Error as exc:
            logger.debug("Credential decoding failed", exc_info=True)
            return Rejected(Rejection(wrap(InvalidCredentialError, exc)), Route.ERROR)

        if not validate_preimage(credentials, preimage_hex):
            return Rejected(Rejection(InvalidPreimageError()), Route.ERROR, credentials)

        request = Request(with_state(request.scope, **{CREDENTIALS_KEY: credentials}), request.receive)

        # Signature, caveats and revocation are the authority's call; a rejection
        # here still lets the client retry with a better credential, unpaid
        rejection = await self._authority.approve_access(request, credentials)
        if rejection is not None:
            return Rejected(rejection, Route.AUTHENTICATE, credentials)
        return Approved(credentials)


def l402_proxy(
    minter: Minter,
    authority: AccessAuthority,
    **options: Any,
) -> Callable[[ASGIApp], L402Middleware]:
    """Return a factory wrapping any ASGI app in an :class:`L402Middleware`."""

    def wrap_app(app: ASGIApp) -> L402Middleware:
        return L402Middleware(app, minter, authority, **options)

    return wrap_app
