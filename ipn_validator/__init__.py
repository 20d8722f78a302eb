"""PayPal IPN (Instant Payment Notification) verification.

Receives IPNs, acknowledges them immediately, then confirms each one with
a round-trip to PayPal before handing it to a caller-supplied handler.
"""

from ipn_validator.config import ProviderEndpoints
from ipn_validator.errors import (
    AuthenticityError,
    ConfigurationError,
    IPNError,
    IPNErrorKind,
    ModeMismatchError,
    TransportError,
)
from ipn_validator.verifier import (
    IPNVerifier,
    VerificationOutcome,
    VerificationStatus,
    create_validator,
    require_validator,
)

__all__ = [
    "AuthenticityError",
    "ConfigurationError",
    "IPNError",
    "IPNErrorKind",
    "IPNVerifier",
    "ModeMismatchError",
    "ProviderEndpoints",
    "TransportError",
    "VerificationOutcome",
    "VerificationStatus",
    "create_validator",
    "require_validator",
]
