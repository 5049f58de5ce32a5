import sys
from typing import Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> list[str]:
    """Replace loguru's default sink. Returns a description of each registered sink."""
    logger.remove()

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)
    descriptions = [f"console (stderr, {level})"]

    if log_file:
        logger.add(log_file, level=level, format=FILE_FORMAT, rotation="10 MB", retention=3)
        descriptions.append(f"file ({log_file}, {level})")

    return descriptions
