"""Run the IPN listener: ``python -m ipn_validator`` or ``ipn-validator``."""

from __future__ import annotations

import uvicorn

from ipn_validator.config import get_settings
from ipn_validator.handlers import create_app


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
