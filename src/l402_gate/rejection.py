"""Rejection causes handed from the pipeline to the challenge issuer or error handler."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from starlette.datastructures import MutableHeaders

# Header carrying the recovery hint of a recoverable rejection.
RECOVERY_HINT_HEADER = "Authentication-Info"


@dataclass(frozen=True)
class Rejection:
    """A denial that carries only its cause.

    Attributes:
        error: The exception describing why the request was denied.
    """

    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass(frozen=True)
class RecoverableRejection(Rejection):
    """A denial the client may recover from without paying again.

    Attributes:
        advise: Writes a machine-readable recovery hint into the response
            headers, e.g. which caveats a new credential should carry.
    """

    advise: Callable[[MutableHeaders], None]

    def advise_recovery(self, headers: MutableHeaders) -> None:
        self.advise(headers)

    @classmethod
    def with_header(
        cls,
        error: Exception,
        value: str,
        header: str = RECOVERY_HINT_HEADER,
    ) -> RecoverableRejection:
        """Build a rejection whose hint is a single header set to ``value``."""

        def advise(headers: MutableHeaders) -> None:
            headers[header] = value

        return cls(error=error, advise=advise)
