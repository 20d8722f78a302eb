"""Receipt acknowledgment.

PayPal keeps re-sending an IPN until it gets HTTP 200, so receipt is
acknowledged before verification starts and regardless of its outcome.
"""

from __future__ import annotations

import logging

from ipn_validator.protocol import Acknowledger

logger = logging.getLogger(__name__)


def acknowledge_receipt(response: Acknowledger) -> None:
    """Send the success status on the original connection."""
    response.acknowledge()
    logger.debug("IPN receipt acknowledged")
