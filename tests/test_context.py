import pytest

from jms_sender.core.errors import DirectoryError
from jms_sender.naming import context
from jms_sender.naming.context import (
    build_environment,
    open_naming_session,
    resolve_context_factory,
)
from jms_sender.providers.pulsar import PulsarDirectory

from fakes import FakeDirectory


class NotADirectory:
    pass


class BrokenDirectory(FakeDirectory):
    def __init__(self, environment, bindings=None):
        raise ConnectionRefusedError("connection refused")


def test_alias():
    assert resolve_context_factory("pulsar") is PulsarDirectory


def test_import_path():
    assert resolve_context_factory("fakes:FakeDirectory") is FakeDirectory


@pytest.mark.parametrize(
    "identifier",
    [
        "weblogic.jndi.WLInitialContextFactory",
        "no_such_module:Directory",
        "fakes:Missing",
        f"{__name__}:NotADirectory",
    ],
)
def test_bad_identifier(identifier):
    with pytest.raises(DirectoryError):
        resolve_context_factory(identifier)


def test_environment(config):
    environment = build_environment(config, timeout=5)

    assert environment == {
        "initial_context_factory": "fake",
        "provider_url": "t3://localhost:7001",
        "security_principal": "weblogic",
        "security_credentials": "secret",
        "operation_timeout_seconds": 5,
    }


def test_open_naming_session(monkeypatch, config, progress):
    monkeypatch.setitem(context.CONTEXT_FACTORIES, "fake", "fakes:FakeDirectory")
    bindings = {"destinations": {"q1": "topic"}}

    session = open_naming_session(config, bindings, progress)

    assert isinstance(session, FakeDirectory)
    assert session.bindings == bindings
    assert session.environment["provider_url"] == "t3://localhost:7001"
    assert progress.at("INFO") == ["getting initial context (t3://localhost:7001, user: weblogic)..."]


def test_open_failure_becomes_directory_error(monkeypatch, config):
    monkeypatch.setitem(context.CONTEXT_FACTORIES, "fake", f"{__name__}:BrokenDirectory")

    with pytest.raises(DirectoryError, match="ConnectionRefusedError") as excinfo:
        open_naming_session(config)

    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)
