"""IPN HTTP handlers — FastAPI hosting for the verifier.

The listener:
1. Reads the raw form-urlencoded body
2. Hands the parsed IPN to the validator, which answers 200 right away
3. Keeps the verification task alive until it finishes

Contract:
- Always 200 for a received IPN, whatever verification decides
- No verification details in HTTP responses
- Log all IPN activity for audit trail
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ipn_validator.config import IPNSettings, get_settings
from ipn_validator.protocol import CompletionHandler, InboundNotification
from ipn_validator.verifier import Validator, VerificationOutcome, require_validator
from ipn_validator.wire import parse_notification

logger = logging.getLogger(__name__)


class StatusAcknowledger:
    """Acknowledger that records the status the route should answer with."""

    def __init__(self) -> None:
        self.status_code: int | None = None

    def acknowledge(self) -> None:
        self.status_code = 200


def log_verification_outcome(
    error: Exception | None,
    notification: dict[str, str] | None,
    request: Any = None,
) -> None:
    """Default completion handler: log the verdict."""
    if error is not None:
        logger.error("IPN INVALID: %s", error)
    else:
        logger.info("IPN verified: %s", notification)


def register_ipn_routes(app: FastAPI, validator: Validator, path: str = "/") -> None:
    """Register the IPN listener and status routes on the FastAPI app."""
    pending: set[asyncio.Task] = set()
    counts: dict[str, int] = {}
    app.state.ipn_tasks = pending
    app.state.ipn_counts = counts

    def _track(task: asyncio.Task) -> None:
        pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("IPN verification task crashed", exc_info=exc)
            return
        outcome: VerificationOutcome = task.result()
        counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1

    @app.post(path)
    async def ipn_listener(request: Request):
        """Receive a PayPal IPN."""
        body = await request.body()
        notification = InboundNotification(
            body=parse_notification(body),
            remote_addr=request.client.host if request.client else None,
        )
        logger.info(
            "IPN_AUDIT received txn=%s type=%s from=%s",
            notification.body.get("txn_id", ""),
            notification.body.get("txn_type", ""),
            notification.remote_addr,
        )

        ack = StatusAcknowledger()
        task = validator(notification, ack)
        pending.add(task)
        task.add_done_callback(_track)

        return PlainTextResponse("OK", status_code=ack.status_code or 200)

    @app.get("/ipn/status")
    async def ipn_status():
        """Verification outcome counts and in-flight verifications."""
        return {"counts": dict(counts), "pending": len(pending)}

    logger.info("IPN routes registered: POST %s", path)


def create_app(
    settings: IPNSettings | None = None,
    completion_handler: CompletionHandler | None = None,
) -> FastAPI:
    """Build the IPN listener app.

    Raises ConfigurationError when ``completion_handler`` is not callable.
    """
    settings = settings or get_settings()
    validator = require_validator(
        completion_handler or log_verification_outcome,
        settings.production_mode,
        endpoints=settings.endpoints(),
        timeout=settings.verify_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "IPN listener starting (production_mode=%s)", settings.production_mode
        )
        yield
        in_flight = list(app.state.ipn_tasks)
        if in_flight:
            logger.info("Waiting for %d in-flight IPN verifications", len(in_flight))
            await asyncio.gather(*in_flight, return_exceptions=True)

    app = FastAPI(title="PayPal IPN Listener", lifespan=lifespan)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "internal error"}, status_code=500)

    register_ipn_routes(app, validator, settings.route_path)
    return app
