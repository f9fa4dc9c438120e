"""Run the relying party by hand, against a broker on BROKER_URL.

Run with:
    python scripts/run_relying_party.py

Then open http://localhost:44180/ (or RP_HOST:RP_PORT) in a browser.  Every
outcome event is logged, so nothing falls through to the fallback
diagnostics.  Ctrl-C stops the fixture.
"""

from __future__ import annotations

import logging
import time

from relying_party.core.config import SETTINGS
from relying_party.core.events import RPEvent
from relying_party.core.logging import setup_logging
from relying_party.server import start_relying_party

logger = logging.getLogger("run_relying_party")


def main() -> None:
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

    rp = start_relying_party(SETTINGS)
    rp.on(RPEvent.VERIFIED, lambda email: logger.info("verified  email=%s", email))
    rp.on(
        RPEvent.GOT_ERROR,
        lambda params: logger.warning(
            "gotError  error=%s description=%s",
            params.get("error", ""),
            params.get("error_description", ""),
        ),
    )
    rp.on(
        RPEvent.INVALID_TOKEN,
        lambda params: logger.warning("invalidToken  fields=%s", sorted(params)),
    )

    logger.info(
        "rp-fixture up  url=%s broker=%s redirect_uri=%s",
        rp.base_url,
        SETTINGS.broker_url,
        SETTINGS.redirect_uri,
    )
    try:
        while rp.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        rp.destroy()


if __name__ == "__main__":
    main()
