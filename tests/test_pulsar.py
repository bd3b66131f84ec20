import dataclasses

import pulsar
import pytest

from jms_sender.core.errors import BrokerError, DirectoryError
from jms_sender.naming.interfaces import AcknowledgeMode
from jms_sender.orchestrator import SendOrchestrator
from jms_sender.providers.pulsar import (
    PulsarConnectionFactory,
    PulsarDestination,
    PulsarDirectory,
)


class FakeProducer:
    def __init__(self, topic, fail_send=False):
        self._topic = topic
        self.fail_send = fail_send
        self.sent = []
        self.closed = False

    def topic(self):
        return self._topic

    def send(self, content, properties=None):
        if self.fail_send:
            raise pulsar.Timeout("send timed out")
        self.sent.append((content, properties))

    def close(self):
        self.closed = True


class FakeClient:
    instances: list["FakeClient"] = []
    unreachable = False
    fail_send = False

    def __init__(self, service_url, **options):
        self.service_url = service_url
        self.options = options
        self.producers = []
        self.closed = False
        FakeClient.instances.append(self)

    def get_topic_partitions(self, topic):
        if FakeClient.unreachable:
            raise pulsar.ConnectError("connection refused")
        return [topic]

    def create_producer(self, topic, **settings):
        producer = FakeProducer(topic, FakeClient.fail_send)
        producer.settings = settings
        self.producers.append(producer)
        return producer

    def close(self):
        self.closed = True


BINDINGS = {
    "connection_factories": {
        "done": {"operation_timeout_seconds": 10, "producer": {"send_timeout_millis": 500}},
    },
    "destinations": {
        "q1": "persistent://public/default/q1",
        "q2": {"topic": "persistent://tenant/ns/q2"},
        "q3": None,
    },
}

ENVIRONMENT = {
    "initial_context_factory": "pulsar",
    "provider_url": "pulsar://localhost:6650",
    "security_principal": "admin",
    "security_credentials": "secret",
    "operation_timeout_seconds": 3,
}


@pytest.fixture(autouse=True)
def fake_pulsar(monkeypatch):
    FakeClient.instances = []
    FakeClient.unreachable = False
    FakeClient.fail_send = False
    monkeypatch.setattr(pulsar, "Client", FakeClient)
    monkeypatch.setattr(pulsar, "AuthenticationBasic", lambda user, password: ("basic", user, password))
    return FakeClient


def test_directory_connects_with_credentials():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)

    client = FakeClient.instances[0]
    assert client.service_url == "pulsar://localhost:6650"
    assert client.options["authentication"] == ("basic", "admin", "secret")
    assert client.options["operation_timeout_seconds"] == 3

    directory.close()
    assert client.closed


def test_unreachable_broker():
    FakeClient.unreachable = True

    with pytest.raises(DirectoryError, match="Could not reach broker"):
        PulsarDirectory(ENVIRONMENT, BINDINGS)

    assert FakeClient.instances[0].closed


def test_lookup():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)

    factory = directory.lookup("done")
    assert isinstance(factory, PulsarConnectionFactory)
    assert factory.service_url == "pulsar://localhost:6650"

    assert directory.lookup("q1").topic == "persistent://public/default/q1"
    assert directory.lookup("q2").topic == "persistent://tenant/ns/q2"
    assert directory.lookup("q3").topic == "q3"

    with pytest.raises(DirectoryError, match="not bound"):
        directory.lookup("missing")


def test_lookup_after_close():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)
    directory.close()

    with pytest.raises(DirectoryError):
        directory.lookup("q1")


def test_send_through_connection():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)
    connection = directory.lookup("done").create_connection()
    client = connection.client
    assert client is not FakeClient.instances[0]
    assert client.options["operation_timeout_seconds"] == 10

    session = connection.create_session(False, AcknowledgeMode.AUTO_ACKNOWLEDGE)
    message = session.create_text_message("hello")

    with session.create_sender(directory.lookup("q1")) as sender:
        with pytest.raises(BrokerError, match="not started"):
            sender.send(message)
        connection.start()
        sender.send(message)

    producer = client.producers[0]
    assert producer.settings == {"send_timeout_millis": 500}
    assert producer.sent[0][0] == b"hello"
    assert producer.sent[0][1] == {"timestamp_utc": message.timestamp.isoformat()}
    assert producer.closed

    session.close()
    connection.close()
    assert client.closed


def test_send_failure_is_broker_error():
    FakeClient.fail_send = True
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)
    connection = directory.lookup("done").create_connection()
    session = connection.create_session(False, AcknowledgeMode.AUTO_ACKNOWLEDGE)
    connection.start()

    sender = session.create_sender(directory.lookup("q1"))
    with pytest.raises(BrokerError, match="Timeout"):
        sender.send(session.create_text_message("hello"))


def test_session_close_releases_open_senders():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)
    connection = directory.lookup("done").create_connection()
    session = connection.create_session(False, AcknowledgeMode.AUTO_ACKNOWLEDGE)
    session.create_sender(PulsarDestination("q1", "persistent://public/default/q1"))

    session.close()

    assert connection.client.producers[0].closed
    with pytest.raises(BrokerError):
        session.create_text_message("late")


def test_transacted_session_is_rejected():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)
    connection = directory.lookup("done").create_connection()

    with pytest.raises(BrokerError):
        connection.create_session(True, AcknowledgeMode.AUTO_ACKNOWLEDGE)


def test_full_workflow(config, progress):
    pulsar_config = type(config)(
        protocol="pulsar",
        host="localhost",
        port=6650,
        principal="admin",
        credential="secret",
        context_factory="pulsar",
    )
    orchestrator = SendOrchestrator(pulsar_config, "done", "q1", bindings=BINDINGS, progress=progress)

    result = orchestrator.run(message="hello")

    assert result.exit_code == 0
    assert result.close_report.ok
    naming_client, connection_client = FakeClient.instances
    assert connection_client.producers[0].sent[0][0] == b"hello"
    assert naming_client.closed
    assert connection_client.closed


def test_text_message_is_immutable():
    directory = PulsarDirectory(ENVIRONMENT, BINDINGS)
    session = directory.lookup("done").create_connection().create_session(
        False, AcknowledgeMode.AUTO_ACKNOWLEDGE
    )
    message = session.create_text_message("hello")

    with pytest.raises(dataclasses.FrozenInstanceError):
        message.text = "changed"
    assert not hasattr(message, "properties")
