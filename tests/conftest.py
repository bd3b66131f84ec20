import pytest
from loguru import logger

from jms_sender.core.config import ConnectionConfig

from fakes import FakeBroker


class ProgressRecorder:
    def __init__(self):
        self.lines: list[tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.lines.append((level, message))

    def at(self, level: str) -> list[str]:
        return [message for recorded, message in self.lines if recorded == level]


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # main() binds a handler to the stream pytest swaps out between tests
    logger.remove()


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def progress():
    return ProgressRecorder()


@pytest.fixture
def config():
    return ConnectionConfig(
        protocol="t3",
        host="localhost",
        port=7001,
        principal="weblogic",
        credential="secret",
        context_factory="fake",
    )
