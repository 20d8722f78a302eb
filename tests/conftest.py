"""Shared fixtures for the IPN validator test suite."""

from __future__ import annotations

from typing import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from ipn_validator.protocol import InboundNotification


async def _stream(chunks: list[str]):
    for chunk in chunks:
        yield chunk.encode("utf-8")


class FakePayPal:
    """Stands in for PayPal's verification endpoint via httpx.MockTransport."""

    def __init__(self, reply: str = "VERIFIED", chunks: list[str] | None = None) -> None:
        self.reply = reply
        self.chunks = chunks
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.chunks is not None:
            return httpx.Response(200, content=_stream(self.chunks))
        return httpx.Response(200, text=self.reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


class RecordingAcknowledger:
    """Response primitive that records acknowledgments."""

    def __init__(self) -> None:
        self.acknowledged = 0

    def acknowledge(self) -> None:
        self.acknowledged += 1


@pytest.fixture
def paypal() -> FakePayPal:
    return FakePayPal()


@pytest.fixture
def completion() -> MagicMock:
    """Synchronous completion handler mock."""
    return MagicMock(return_value=None)


@pytest.fixture
def ack() -> RecordingAcknowledger:
    return RecordingAcknowledger()


@pytest.fixture
def make_request() -> Callable[..., InboundNotification]:
    def _make(**fields: str) -> InboundNotification:
        return InboundNotification(body=dict(fields))

    return _make
