"""Error taxonomy for the L402 pipeline and the default error handler."""

from __future__ import annotations

import logging

from starlette.responses import PlainTextResponse
from starlette.types import Receive, Scope, Send

from l402_gate.state import get_rejection

logger = logging.getLogger(__name__)


class L402Error(Exception):
    """Base class for every error raised or carried by l402-gate."""

    default_message = "l402 error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class PaymentRequiredError(L402Error):
    """No L402 credential was presented."""

    default_message = "payment required"


class InvalidCredentialError(L402Error):
    default_message = "invalid credential"


class InvalidPreimageError(L402Error):
    default_message = "invalid preimage"


class AccessDeniedError(L402Error):
    """The access authority refused the presented credentials."""

    default_message = "access denied"


class FailedMintingError(L402Error):
    default_message = "failed credential minting"


class UnknownVersionError(L402Error):
    default_message = "unknown L402 version"


class EmptyCredentialDataError(L402Error):
    default_message = "empty credential data"


class CredentialDecodeError(L402Error):
    default_message = "malformed credential data"


class CredentialEncodeError(L402Error):
    default_message = "failed to encode credential"


def wrap(error_cls: type[L402Error], err: BaseException) -> L402Error:
    """Build ``error_cls`` with ``err`` appended to its message and chained as cause."""
    wrapped = error_cls(f"{error_cls.default_message}: {err}")
    wrapped.__cause__ = err
    return wrapped


_CLIENT_ERRORS = (InvalidCredentialError, InvalidPreimageError)


async def default_error_handler(scope: Scope, receive: Receive, send: Send) -> None:
    """Render the rejection stored in the scope as a plain-text error response.

    Malformed credentials and wrong preimages are client faults (400);
    everything else, minting failures included, is a server fault (500).
    """
    rejection = get_rejection(scope)
    if rejection is None:
        logger.error("Error handler invoked without a rejection")
        response = PlainTextResponse("internal server error", status_code=500)
    else:
        status_code = 400 if isinstance(rejection.error, _CLIENT_ERRORS) else 500
        response = PlainTextResponse(rejection.message, status_code=status_code)
    await response(scope, receive, send)
