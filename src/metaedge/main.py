"""Console entrypoint: ``metaedge`` runs the HTTP edge until interrupted."""

import asyncio
import sys

from .http_server import run_http_server
from .observability.logger import configure_logging, get_logger

logger = get_logger(__name__)


async def main() -> None:
    await run_http_server()


def run() -> None:
    configure_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("shutdown_requested")
        sys.exit(0)
    except Exception as e:
        logger.exception("fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    run()
