"""Serve a demo API behind L402 authentication.

Usage (from the project root):
    L402_SECRET=my-secret python examples/run.py

The demo minter does not talk to a Lightning node: it prints the preimage of
every invoice it issues so you can "pay" by hand.

    curl -i http://localhost:8000/health            # 200 (exempt)
    curl -i http://localhost:8000/quote             # 402 with macaroon + invoice
    curl -H "Authorization: L402 <macaroon>:<preimage>" localhost:8000/quote  # 200
"""

import hashlib
import logging
import os

import uvicorn
from pymacaroons import Macaroon, Verifier
from pymacaroons.exceptions import MacaroonException
from pymacaroons.macaroon import MACAROON_V2
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from l402_gate import (
    AccessDeniedError,
    Identifier,
    InvoiceChallenge,
    L402Middleware,
    Rejection,
    encode_credentials,
    encode_identifier,
    get_credentials,
    set_log_level,
)

ROOT_KEY = os.environ.get("L402_SECRET", "demo-secret")


class DemoMinter:
    async def mint_with_challenge(self, request):
        preimage = os.urandom(32)
        payment_hash = hashlib.sha256(preimage).digest()
        identifier = Identifier(version=0, payment_hash=payment_hash, id=os.urandom(32))
        macaroon = Macaroon(
            location="localhost", identifier=encode_identifier(identifier), key=ROOT_KEY, version=MACAROON_V2
        )
        macaroon.add_first_party_caveat(f"path = {request.url.path}")
        print(f"Preimage for {request.url.path}: {preimage.hex()}")
        return encode_credentials(macaroon), InvoiceChallenge(f"lnbcrt-demo-{payment_hash.hex()}")


class PathAuthority:
    async def approve_access(self, request, credentials):
        for macaroon in credentials.values():
            verifier = Verifier()
            verifier.satisfy_exact(f"path = {request.url.path}")
            try:
                verifier.verify(macaroon, ROOT_KEY)
            except MacaroonException as exc:
                return Rejection(AccessDeniedError(str(exc)))
        return None


async def quote(request):
    return JSONResponse({"quote": "Stay humble, stack sats.", "credentials": len(get_credentials(request))})


async def health(request):
    return PlainTextResponse("ok")


logging.basicConfig(level=logging.INFO)
set_log_level("DEBUG")

app = Starlette(
    routes=[Route("/quote", quote), Route("/health", health)],
    middleware=[Middleware(L402Middleware, minter=DemoMinter(), authority=PathAuthority(), exempt_paths={"/health"})],
)

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
