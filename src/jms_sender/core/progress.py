from typing import Callable
from loguru import logger


# (level, message); levels are loguru level names such as "INFO" or "DEBUG".
ProgressSink = Callable[[str, str], None]


def loguru_sink(level: str, message: str) -> None:
    """Default sink, forwards every progress line to loguru."""
    logger.opt(depth=1).log(level, message)


def null_sink(level: str, message: str) -> None:
    return None
