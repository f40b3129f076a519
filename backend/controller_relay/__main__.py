import logging

import uvicorn

from controller_relay.core.config import get_settings
from controller_relay.core.logging import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    log_file = configure_logging(settings)
    if log_file is not None:
        logger.info("logging to %s", log_file)
    logger.info("controller relay listening on http://%s:%d", settings.host, settings.port)
    uvicorn.run(
        "controller_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
