import sys
from typing import List, Optional
from loguru import logger
import os

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(debug_mode: bool = True, log_dir: Optional[str] = "logs") -> List[int]:
    """
    Configures Loguru logger for a workspace session.

    Args:
        debug_mode: DEBUG on the console when True, INFO otherwise
        log_dir: Directory for the rotating file sink; None disables file logging

    Returns:
        Ids of the sinks that were added (usable with logger.remove)
    """
    # Remove default handler
    logger.remove()

    level = "DEBUG" if debug_mode else "INFO"
    sinks = [logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)]

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        sinks.append(logger.add(
            os.path.join(log_dir, "queryspace_{time}.log"),
            rotation="10 MB",
            retention="1 week",
            level="DEBUG",
        ))

    logger.info(f"Logging initialized (level={level}, file_sink={'on' if log_dir else 'off'}).")
    return sinks


def setup_logging_from_config(config) -> List[int]:
    """Configure logging from a ConfigManager's `general` section."""
    general = config.data.general
    return setup_logging(debug_mode=general.debug_mode, log_dir=general.log_dir)
