"""Interfaces the verifier needs from its hosting layer.

The hosting layer (FastAPI in this repo, see handlers.py) owns HTTP. The
verifier only needs two capabilities from it:
- a request-like object exposing the parsed form body
- a response-like object that can acknowledge receipt
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class InboundRequest(Protocol):
    """Request context carrying a parsed IPN."""

    @property
    def body(self) -> Mapping[str, str]:
        """IPN fields decoded from the form-urlencoded POST body."""
        ...


@runtime_checkable
class Acknowledger(Protocol):
    """Response primitive that tells the sender the IPN was received."""

    def acknowledge(self) -> None:
        """Send the success status (HTTP 200) back to the sender."""
        ...


# (error, notification, request) -> None, or an awaitable for async handlers
CompletionHandler = Callable[
    [Optional[Exception], Optional[dict[str, str]], Any],
    Union[None, Awaitable[None]],
]


@dataclass(frozen=True)
class InboundNotification:
    """An IPN as delivered by the hosting layer."""

    body: Mapping[str, str] = field(default_factory=dict)
    remote_addr: str | None = None
