"""Wire format for the IPN verification round-trip.

PayPal expects the IPN echoed back verbatim as form-urlencoded pairs, with
the validation directive appended, POSTed to /cgi-bin/webscr on the host
matching the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import parse_qsl, urlencode

from ipn_validator.config import ProviderEndpoints

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class VerificationRequest:
    """Outbound verification call, built fresh for each IPN."""

    host: str
    path: str
    body: str
    headers: dict[str, str] = field(default_factory=dict)
    method: str = "POST"
    scheme: str = "https"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}"

    @property
    def content_length(self) -> int:
        return int(self.headers["Content-Length"])


def encode_notification(notification: Mapping[str, str]) -> str:
    """Form-encode IPN fields in the mapping's iteration order."""
    return urlencode(list(notification.items()))


def build_verification_body(notification: Mapping[str, str], directive: str) -> str:
    """Echo the IPN back with the validation directive appended.

    An empty IPN still yields ``&<directive>``.
    """
    return f"{encode_notification(notification)}&{directive}"


def build_verification_request(
    notification: Mapping[str, str],
    production_mode: bool,
    endpoints: ProviderEndpoints,
) -> VerificationRequest:
    """Build the POST that asks PayPal to confirm ``notification``."""
    body = build_verification_body(notification, endpoints.directive)
    return VerificationRequest(
        host=endpoints.host_for(production_mode),
        path=endpoints.path,
        body=body,
        headers={
            "Content-Length": str(len(body.encode("utf-8"))),
            "Content-Type": FORM_CONTENT_TYPE,
        },
        scheme=endpoints.scheme,
    )


def parse_notification(raw: bytes) -> dict[str, str]:
    """Decode a form-urlencoded IPN body.

    Blank values are kept; when a key repeats, the last value wins.
    """
    text = raw.decode("utf-8", errors="replace")
    return dict(parse_qsl(text, keep_blank_values=True))
