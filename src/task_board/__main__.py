"""TaskBoard main application."""

import logging
import sys

import uvicorn

from task_board.config import Config
from task_board.factory import create_app


def main() -> int:
    """Run the application."""
    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s [%(name)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = Config()
    app = create_app(config)
    logging.info(f"[Main] Task board data at {config.data_root.resolve()}")

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
