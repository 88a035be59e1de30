"""Request-scoped values shared between the middleware and its collaborators.

Values live in the ASGI ``scope["state"]`` mapping, which starlette exposes as
``request.state``. Each stage hands the next one a child scope carrying a copy
of the state, so a value set for one request never leaks into the parent scope
or into another request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from starlette.requests import HTTPConnection
from starlette.types import Scope

if TYPE_CHECKING:
    from pymacaroons import Macaroon

    from l402_gate.identifier import Identifier
    from l402_gate.rejection import Rejection

# Keys under scope["state"]; also readable as request.state.<key>.
CREDENTIALS_KEY = "l402_credentials"
REJECTION_KEY = "l402_rejection"


def with_state(scope: Scope, **values: Any) -> Scope:
    """Return a child scope whose state is the parent's state plus ``values``."""
    state = dict(scope.get("state") or {})
    state.update(values)
    child = dict(scope)
    child["state"] = state
    return child


def _state_of(conn: Scope | HTTPConnection) -> Any:
    scope = conn.scope if isinstance(conn, HTTPConnection) else conn
    return scope.get("state") or {}


def get_credentials(conn: Scope | HTTPConnection) -> dict[Identifier, Macaroon] | None:
    """Credentials approved for this request, keyed by identifier."""
    return _state_of(conn).get(CREDENTIALS_KEY)


def get_rejection(conn: Scope | HTTPConnection) -> Rejection | None:
    """The rejection that routed this request, if any."""
    return _state_of(conn).get(REJECTION_KEY)
