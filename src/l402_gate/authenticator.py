"""ASGI app answering rejected requests with a fresh L402 challenge."""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from l402_gate.errors import FailedMintingError, PaymentRequiredError, wrap
from l402_gate.protocol import Minter
from l402_gate.rejection import RecoverableRejection, Rejection
from l402_gate.state import REJECTION_KEY, get_rejection, with_state

logger = logging.getLogger(__name__)

AUTHENTICATE_HEADER = "WWW-Authenticate"


class ChallengeIssuer:
    """Responds 402 Payment Required with a newly minted credential and challenge.

    The rejection that routed the request here decides the response body:
    a recoverable rejection gets the generic message plus its recovery hint in
    the headers, a plain rejection has its message sent verbatim, and a request
    without any rejection gets the generic message.

    If minting fails the request goes to ``error_handler`` with a
    ``FailedMintingError`` instead; no 402 is sent.

    Args:
        minter: Issues the credential and challenge.
        error_handler: ASGI app rendering internal failures.
    """

    def __init__(self, minter: Minter, error_handler: ASGIApp) -> None:
        if not isinstance(minter, Minter):
            raise ValueError(f"minter must implement mint_with_challenge(), got {type(minter).__name__}")
        self._minter = minter
        self._error_handler = error_handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        try:
            credential, challenge = await self._minter.mint_with_challenge(request)
        except Exception as exc:
            logger.warning("Credential minting failed for %s", scope.get("path", ""), exc_info=True)
            rejection = Rejection(wrap(FailedMintingError, exc))
            await self._error_handler(with_state(scope, **{REJECTION_KEY: rejection}), receive, send)
            return

        rejection = get_rejection(scope)
        response = PlainTextResponse(self._message_for(rejection), status_code=402)
        if isinstance(rejection, RecoverableRejection):
            # Access may be regained without a new payment, e.g. with a less restricted credential
            rejection.advise_recovery(response.headers)
        response.headers.append(AUTHENTICATE_HEADER, f'L402 macaroon="{credential}", {challenge.render()}')
        await response(scope, receive, send)

    @staticmethod
    def _message_for(rejection: Rejection | None) -> str:
        if rejection is None or isinstance(rejection, RecoverableRejection):
            return PaymentRequiredError.default_message
        return rejection.message
