"""IPN verification errors.

Every error that can end a verification is one of the IPNError subclasses
below. They are delivered to the completion handler as values; the
verification path itself never raises them. Each carries the originating
request context in ``request``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class IPNErrorKind(Enum):
    """Error classification."""

    CONFIGURATION = "configuration"
    MODE_MISMATCH = "mode_mismatch"
    AUTHENTICITY = "authenticity"
    TRANSPORT = "transport"


class IPNError(Exception):
    """Base exception for IPN verification errors."""

    def __init__(
        self,
        message: str,
        kind: IPNErrorKind,
        request: Any = None,
    ) -> None:
        """Initialize IPN error.

        Args:
            message: Human-readable reason
            kind: Error classification
            request: Request context the failed notification arrived on
        """
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.request = request


class ConfigurationError(IPNError):
    """Completion handler is missing or not callable."""

    def __init__(self, handler: Any) -> None:
        super().__init__(
            f"Cannot use provided completion handler - it was not callable: {handler!r}",
            IPNErrorKind.CONFIGURATION,
        )
        self.handler = handler


class ModeMismatchError(IPNError):
    """IPN environment (sandbox/live) conflicts with the configured mode."""

    def __init__(self, production_mode: bool, request: Any = None) -> None:
        mode_state = "on" if production_mode else "off"
        ipn_env = "sandbox" if production_mode else "live"
        super().__init__(
            f"Production mode is {mode_state}, cannot handle {ipn_env} IPNs.",
            IPNErrorKind.MODE_MISMATCH,
            request,
        )
        self.production_mode = production_mode


class AuthenticityError(IPNError):
    """PayPal answered the verification request with something other than VERIFIED."""

    def __init__(self, response_text: str, request: Any = None) -> None:
        super().__init__(
            f"IPN verification failed, message: {response_text}",
            IPNErrorKind.AUTHENTICITY,
            request,
        )
        self.response_text = response_text


class TransportError(IPNError):
    """The verification request could not be completed."""

    def __init__(self, cause: Exception, request: Any = None) -> None:
        super().__init__(
            f"IPN verification request failed: {type(cause).__name__}: {cause}",
            IPNErrorKind.TRANSPORT,
            request,
        )
        self.cause = cause
        self.__cause__ = cause
