"""IPN validator configuration.

Protocol constants live in an immutable ProviderEndpoints value that is
injected into the verifier. Deployment knobs come from the environment
(prefix IPN_) or a local .env file.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings

LIVE_HOST = "www.paypal.com"
SANDBOX_HOST = "www.sandbox.paypal.com"
VERIFY_PATH = "/cgi-bin/webscr"
VERIFY_DIRECTIVE = "cmd=_notify-validate"
VERIFIED_TEXT = "VERIFIED"


@dataclass(frozen=True)
class ProviderEndpoints:
    """Where and how PayPal is asked to confirm an IPN."""

    live_host: str = LIVE_HOST
    sandbox_host: str = SANDBOX_HOST
    path: str = VERIFY_PATH
    directive: str = VERIFY_DIRECTIVE
    success_text: str = VERIFIED_TEXT
    scheme: str = "https"

    def host_for(self, production_mode: bool) -> str:
        return self.live_host if production_mode else self.sandbox_host


class IPNSettings(BaseSettings):
    """Environment-driven settings for the IPN listener."""

    production_mode: bool = False

    live_host: str = LIVE_HOST
    sandbox_host: str = SANDBOX_HOST
    verify_path: str = VERIFY_PATH
    # None: no timeout on the verification round-trip
    verify_timeout: float | None = None

    route_path: str = "/"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    model_config = {"env_prefix": "IPN_", "env_file": ".env", "extra": "ignore"}

    def endpoints(self) -> ProviderEndpoints:
        return ProviderEndpoints(
            live_host=self.live_host,
            sandbox_host=self.sandbox_host,
            path=self.verify_path,
        )


@lru_cache(maxsize=1)
def get_settings() -> IPNSettings:
    """Return the process-wide settings (read once)."""
    return IPNSettings()
