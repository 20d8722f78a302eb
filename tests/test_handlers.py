"""Tests for the FastAPI IPN listener.

Verifies the HTTP request flow:
- 200 OK for every received IPN, independent of verification outcome
- Form body reaches the verifier intact
- Outcome counters on /ipn/status
- Misconfiguration fails app construction
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ipn_validator.config import IPNSettings
from ipn_validator.errors import ConfigurationError
from ipn_validator.handlers import (
    StatusAcknowledger,
    create_app,
    log_verification_outcome,
    register_ipn_routes,
)
from ipn_validator.verifier import create_validator

FORM = {"Content-Type": "application/x-www-form-urlencoded"}


def _app_with(validator) -> FastAPI:
    app = FastAPI()
    register_ipn_routes(app, validator, "/ipn")
    return app


async def _post_and_drain(app: FastAPI, body: bytes) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://listener") as client:
        resp = await client.post("/ipn", content=body, headers=FORM)
    await asyncio.gather(*list(app.state.ipn_tasks))
    return resp


class TestStatusAcknowledger:
    def test_records_200(self):
        ack = StatusAcknowledger()
        assert ack.status_code is None
        ack.acknowledge()
        assert ack.status_code == 200


class TestIPNListener:
    """POST flow through the listener route."""

    @pytest.mark.asyncio
    async def test_verified_ipn(self, completion, paypal):
        app = _app_with(create_validator(completion, True, client=paypal.client()))
        resp = await _post_and_drain(app, b"txn_id=abc&mc_gross=19.95")

        assert resp.status_code == 200
        assert resp.text == "OK"
        assert paypal.last.content == b"txn_id=abc&mc_gross=19.95&cmd=_notify-validate"
        error, notification, request = completion.call_args[0]
        assert error is None
        assert notification == {"txn_id": "abc", "mc_gross": "19.95"}
        assert request.body == notification

    @pytest.mark.asyncio
    async def test_invalid_ipn_still_200(self, completion, paypal):
        paypal.reply = "INVALID"
        app = _app_with(create_validator(completion, True, client=paypal.client()))
        resp = await _post_and_drain(app, b"txn_id=abc")

        assert resp.status_code == 200
        assert completion.call_args[0][0] is not None

    @pytest.mark.asyncio
    async def test_response_has_no_verification_details(self, completion, paypal):
        paypal.reply = "INVALID"
        app = _app_with(create_validator(completion, True, client=paypal.client()))
        resp = await _post_and_drain(app, b"txn_id=abc")

        assert "INVALID" not in resp.text
        assert "verification" not in resp.text.lower()

    @pytest.mark.asyncio
    async def test_status_counts_outcomes(self, completion, paypal):
        app = _app_with(create_validator(completion, True, client=paypal.client()))
        await _post_and_drain(app, b"txn_id=1")
        await _post_and_drain(app, b"txn_id=2&test_ipn=1")

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://listener") as client:
            resp = await client.get("/ipn/status")

        assert resp.json() == {"counts": {"verified": 1, "rejected": 1}, "pending": 0}

    def test_validator_invoked_with_parsed_body(self):
        task = MagicMock()

        def validator(request, response):
            response.acknowledge()
            validator.seen = dict(request.body)
            return task

        with TestClient(_app_with(validator)) as client:
            resp = client.post("/ipn", content=b"item_name=Tee+%26+Mug&test_ipn=1", headers=FORM)

        assert resp.status_code == 200
        assert validator.seen == {"item_name": "Tee & Mug", "test_ipn": "1"}
        task.add_done_callback.assert_called_once()

    def test_unknown_route_is_404(self):
        with TestClient(_app_with(lambda req, res: MagicMock())) as client:
            assert client.post("/nope", content=b"a=b", headers=FORM).status_code == 404


class TestCreateApp:
    """App construction from settings."""

    def test_rejects_non_callable_handler(self):
        with pytest.raises(ConfigurationError):
            create_app(IPNSettings(), completion_handler="not-a-function")

    def test_mismatched_ipn_acknowledged_without_network(self):
        handler = MagicMock()
        app = create_app(IPNSettings(production_mode=False, route_path="/ipn"), handler)

        with TestClient(app) as client:
            resp = client.post("/ipn", content=b"txn_id=live-1", headers=FORM)

        # lifespan shutdown drains the verification before the client exits
        assert resp.status_code == 200
        error = handler.call_args[0][0]
        assert error.message == "Production mode is off, cannot handle live IPNs."

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("IPN_PRODUCTION_MODE", "true")
        monkeypatch.setenv("IPN_SANDBOX_HOST", "sandbox.example.test")
        monkeypatch.setenv("IPN_VERIFY_TIMEOUT", "12.5")
        settings = IPNSettings(_env_file=None)

        assert settings.production_mode is True
        assert settings.verify_timeout == 12.5
        endpoints = settings.endpoints()
        assert endpoints.sandbox_host == "sandbox.example.test"
        assert endpoints.live_host == "www.paypal.com"
        assert endpoints.host_for(True) == "www.paypal.com"


class TestDefaultCompletionHandler:
    def test_logs_invalid(self, caplog):
        with caplog.at_level("ERROR", logger="ipn_validator.handlers"):
            log_verification_outcome(RuntimeError("bad"), {"txn_id": "1"})
        assert "IPN INVALID" in caplog.text

    def test_logs_verified(self, caplog):
        with caplog.at_level("INFO", logger="ipn_validator.handlers"):
            log_verification_outcome(None, {"txn_id": "1"})
        assert "IPN verified" in caplog.text
