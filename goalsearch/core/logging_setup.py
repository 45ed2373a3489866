"""loguru sinks for the CLI and embedding applications."""

import sys

from loguru import logger

from .config import Config


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(config: Config) -> None:
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=config.logging.level)

    if config.logging.file:
        log_file = config.logging.file.expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level="DEBUG"
        )
