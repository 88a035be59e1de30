"""l402-gate: L402 (macaroon + Lightning preimage) authentication for ASGI apps."""

from __future__ import annotations

import logging

from l402_gate.authenticator import ChallengeIssuer
from l402_gate.credentials import decode_credentials, encode_credentials, identifier_of
from l402_gate.errors import (
    AccessDeniedError,
    CredentialDecodeError,
    CredentialEncodeError,
    EmptyCredentialDataError,
    FailedMintingError,
    InvalidCredentialError,
    InvalidPreimageError,
    L402Error,
    PaymentRequiredError,
    UnknownVersionError,
    default_error_handler,
)
from l402_gate.identifier import Identifier, decode_identifier, encode_identifier
from l402_gate.middleware import L402Middleware, l402_proxy
from l402_gate.protocol import AccessAuthority, Challenge, InvoiceChallenge, Minter
from l402_gate.rejection import RecoverableRejection, Rejection
from l402_gate.state import CREDENTIALS_KEY, REJECTION_KEY, get_credentials, get_rejection

__all__ = [
    # Middleware
    "L402Middleware",
    "l402_proxy",
    "ChallengeIssuer",
    "default_error_handler",
    # Collaborators
    "Minter",
    "AccessAuthority",
    "Challenge",
    "InvoiceChallenge",
    # Rejections
    "Rejection",
    "RecoverableRejection",
    # Wire format
    "Identifier",
    "encode_identifier",
    "decode_identifier",
    "encode_credentials",
    "decode_credentials",
    "identifier_of",
    # Request state
    "CREDENTIALS_KEY",
    "REJECTION_KEY",
    "get_credentials",
    "get_rejection",
    # Errors
    "L402Error",
    "PaymentRequiredError",
    "InvalidCredentialError",
    "InvalidPreimageError",
    "AccessDeniedError",
    "FailedMintingError",
    "UnknownVersionError",
    "EmptyCredentialDataError",
    "CredentialDecodeError",
    "CredentialEncodeError",
    "set_log_level",
]

__version__ = "0.1.0"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def set_log_level(log_level: str) -> None:
    """Set the level of the ``l402_gate`` logger (e.g. "DEBUG", "INFO")."""
    if log_level.upper() not in _VALID_LEVELS:
        raise ValueError(f"Unknown log level: {log_level!r}. Valid: {sorted(_VALID_LEVELS)}")
    logging.getLogger("l402_gate").setLevel(getattr(logging, log_level.upper()))
