"""IPN verifier — confirms each IPN with PayPal before trusting it.

Flow per IPN:
1. Acknowledge receipt (HTTP 200) synchronously
2. Reject sandbox IPNs in production mode and live IPNs otherwise (no network call)
3. Echo the IPN to PayPal with cmd=_notify-validate
4. Read the whole response: VERIFIED -> trusted, anything else -> failed

Contract:
- The completion handler is called exactly once per IPN, on one terminal path
- Errors are delivered to the completion handler, never raised
- No retries, no shared state between IPNs
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

import httpx

from ipn_validator.config import ProviderEndpoints
from ipn_validator.errors import (
    AuthenticityError,
    ConfigurationError,
    IPNError,
    ModeMismatchError,
    TransportError,
)
from ipn_validator.protocol import Acknowledger, CompletionHandler, InboundRequest
from ipn_validator.receiver import acknowledge_receipt
from ipn_validator.wire import VerificationRequest, build_verification_request

logger = logging.getLogger(__name__)

TEST_IPN_FIELD = "test_ipn"

Validator = Callable[[InboundRequest, Acknowledger], "asyncio.Task[VerificationOutcome]"]


class VerificationStatus(str, Enum):
    """Terminal states of a verification."""

    VERIFIED = "verified"
    FAILED = "failed"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of verifying one IPN."""

    status: VerificationStatus
    notification: dict[str, str] | None = None
    request: Any = None
    error: IPNError | None = None

    @property
    def verified(self) -> bool:
        return self.status is VerificationStatus.VERIFIED


def is_test_notification(notification: Mapping[str, str]) -> bool:
    """True when the IPN declares itself a sandbox one (any non-empty test_ipn)."""
    return bool(notification.get(TEST_IPN_FIELD))


def check_mode(
    notification: Mapping[str, str],
    production_mode: bool,
    request: Any = None,
) -> ModeMismatchError | None:
    """Return an error when the IPN's environment doesn't match the mode.

    Production mode accepts only live IPNs, sandbox mode only test IPNs, so
    the mode flag equal to the test flag is the mismatch.
    """
    if production_mode == is_test_notification(notification):
        return ModeMismatchError(production_mode, request)
    return None


class IPNVerifier:
    """Verifies IPNs against PayPal and reports to a completion handler."""

    def __init__(
        self,
        completion_handler: CompletionHandler,
        production_mode: bool = False,
        *,
        endpoints: ProviderEndpoints | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize verifier.

        Args:
            completion_handler: Called as (error, notification, request)
            production_mode: True for live PayPal, False for the sandbox
            endpoints: PayPal hosts, path and directive
            client: Shared HTTP client; a fresh one per IPN when omitted
            timeout: Bound on the verification call; None for no bound
        """
        self.completion_handler = completion_handler
        self.production_mode = bool(production_mode)
        self.endpoints = endpoints or ProviderEndpoints()
        self._client = client
        self._timeout = timeout

    async def verify(self, request: InboundRequest) -> VerificationOutcome:
        """Verify the IPN carried by ``request`` and deliver the outcome."""
        notification: dict[str, str] = {}
        try:
            notification = dict(request.body)
            outcome = await self._verify(notification, request)
        except Exception as exc:
            # anything outside httpx's hierarchy still ends in one completion
            logger.exception("IPN verification aborted: %s", type(exc).__name__)
            outcome = VerificationOutcome(
                VerificationStatus.TRANSPORT_ERROR,
                request=request,
                error=TransportError(exc, request),
            )
        logger.info(
            "IPN_AUDIT txn=%s mode=%s status=%s",
            notification.get("txn_id", ""),
            "live" if self.production_mode else "sandbox",
            outcome.status.value,
        )
        await self._complete(outcome)
        return outcome

    async def _verify(
        self, notification: dict[str, str], request: InboundRequest
    ) -> VerificationOutcome:
        mismatch = check_mode(notification, self.production_mode, request)
        if mismatch is not None:
            logger.warning("Rejecting IPN before verification: %s", mismatch.message)
            return VerificationOutcome(
                VerificationStatus.REJECTED, request=request, error=mismatch
            )

        try:
            message = await self._post_verification(notification)
        except httpx.HTTPError as exc:
            logger.warning("IPN verification request failed: %s", type(exc).__name__)
            return VerificationOutcome(
                VerificationStatus.TRANSPORT_ERROR,
                request=request,
                error=TransportError(exc, request),
            )

        if message == self.endpoints.success_text:
            return VerificationOutcome(
                VerificationStatus.VERIFIED, notification=notification, request=request
            )
        return VerificationOutcome(
            VerificationStatus.FAILED,
            notification=notification,
            request=request,
            error=AuthenticityError(message, request),
        )

    async def _post_verification(self, notification: dict[str, str]) -> str:
        """Send the verification request and return the full response text."""
        verification = build_verification_request(
            notification, self.production_mode, self.endpoints
        )
        logger.debug(
            "Verifying IPN with %s (%d bytes)",
            verification.host,
            verification.content_length,
        )

        if self._client is not None:
            return await self._send(self._client, verification)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._send(client, verification)

    async def _send(
        self, client: httpx.AsyncClient, verification: VerificationRequest
    ) -> str:
        chunks: list[str] = []
        async with client.stream(
            verification.method,
            verification.url,
            content=verification.body.encode("utf-8"),
            headers=verification.headers,
        ) as response:
            async for chunk in response.aiter_text():
                chunks.append(chunk)
        return "".join(chunks)

    async def _complete(self, outcome: VerificationOutcome) -> None:
        """Call the completion handler once with the outcome."""
        if outcome.verified:
            args = (None, outcome.notification, outcome.request)
        else:
            args = (outcome.error, outcome.notification, None)

        try:
            result = self.completion_handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("IPN completion handler raised (status=%s)", outcome.status.value)


def create_validator(
    completion_handler: Any,
    production_mode: Any = False,
    *,
    endpoints: ProviderEndpoints | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> Validator | None:
    """Build the per-IPN entry point for the hosting layer.

    Returns None (and logs why) when ``completion_handler`` is not callable.
    The returned function acknowledges receipt right away and schedules the
    verification on the running event loop (calling it outside one raises
    RuntimeError before anything is acknowledged); the task it returns resolves to
    the VerificationOutcome after the completion handler has run.
    """
    if not callable(completion_handler):
        logger.error("Cannot use provided completion handler - it was not callable.")
        logger.error("Completion handler received: %r", completion_handler)
        return None

    verifier = IPNVerifier(
        completion_handler,
        bool(production_mode),
        endpoints=endpoints,
        client=client,
        timeout=timeout,
    )

    def validate_ipn(
        request: InboundRequest, response: Acknowledger
    ) -> asyncio.Task[VerificationOutcome]:
        loop = asyncio.get_running_loop()
        acknowledge_receipt(response)
        return loop.create_task(verifier.verify(request))

    return validate_ipn


def require_validator(
    completion_handler: Any,
    production_mode: Any = False,
    **kwargs: Any,
) -> Validator:
    """Like create_validator, but raise ConfigurationError instead of returning None."""
    validator = create_validator(completion_handler, production_mode, **kwargs)
    if validator is None:
        raise ConfigurationError(completion_handler)
    return validator
