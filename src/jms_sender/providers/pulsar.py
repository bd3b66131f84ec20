import pulsar
from typing import Any

from ..core.errors import BrokerError, DirectoryError
from ..core.message import TextMessage
from ..naming.interfaces import (
    AcknowledgeMode,
    BrokerConnection,
    BrokerSession,
    ConnectionFactory,
    Destination,
    DirectorySession,
    OPERATION_TIMEOUT,
    PROVIDER_URL,
    SECURITY_CREDENTIALS,
    SECURITY_PRINCIPAL,
    Sender,
)


HEALTH_CHECK_TOPIC = "persistent://public/default/non-existent-topic-for-health-check"
DEFAULT_OPERATION_TIMEOUT = 30


def _client_options(environment: dict[str, Any], settings: dict[str, Any]) -> dict[str, Any]:
    options: dict[str, Any] = {
        "operation_timeout_seconds": int(
            settings.get(
                "operation_timeout_seconds",
                environment.get(OPERATION_TIMEOUT) or DEFAULT_OPERATION_TIMEOUT,
            )
        ),
    }
    if "connection_timeout_ms" in settings:
        options["connection_timeout_ms"] = int(settings["connection_timeout_ms"])

    principal = environment.get(SECURITY_PRINCIPAL)
    credential = environment.get(SECURITY_CREDENTIALS)
    if principal and credential:
        options["authentication"] = pulsar.AuthenticationBasic(principal, credential)
    return options


class PulsarDestination(Destination):
    def __init__(self, name: str, topic: str):
        self._name = name
        self.topic = topic

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"PulsarDestination(name={self._name!r}, topic={self.topic!r})"


class PulsarSender(Sender):
    def __init__(self, session: "PulsarSession", producer: pulsar.Producer):
        self._session = session
        self._producer = producer
        self._closed = False

    def send(self, message: TextMessage) -> None:
        if self._closed:
            raise BrokerError("Sender is closed.")
        if not self._session.connection.started:
            raise BrokerError("Connection is not started, the message cannot be delivered.")

        properties = {"timestamp_utc": message.timestamp.isoformat()}
        try:
            self._producer.send(message.payload, properties=properties)
        except Exception as e:
            raise BrokerError(
                f"Failed to send message to Pulsar topic '{self._producer.topic()}'. "
                f"Error: {e.__class__.__name__}: {e}"
            ) from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._session.forget(self)
        try:
            self._producer.close()
        except Exception as e:
            raise BrokerError(f"Error closing producer: {e.__class__.__name__}: {e}") from e


class PulsarSession(BrokerSession):
    """
    A Pulsar session only tracks the producers created through it; Pulsar
    itself acknowledges every send, so the acknowledge mode is informative.
    """

    def __init__(
        self,
        connection: "PulsarConnection",
        acknowledge_mode: AcknowledgeMode,
        producer_settings: dict[str, Any],
    ):
        self.connection = connection
        self.acknowledge_mode = acknowledge_mode
        self._producer_settings = producer_settings
        self._senders: list[PulsarSender] = []
        self._closed = False

    def create_text_message(self, text: str) -> TextMessage:
        if self._closed:
            raise BrokerError("Session is closed.")
        return TextMessage(text)

    def create_sender(self, destination: Destination) -> Sender:
        if self._closed:
            raise BrokerError("Session is closed.")
        if not isinstance(destination, PulsarDestination):
            raise BrokerError(f"{destination!r} is not a Pulsar destination.")

        try:
            producer = self.connection.client.create_producer(
                destination.topic, **self._producer_settings
            )
        except Exception as e:
            raise BrokerError(
                f"Could not create a producer for topic '{destination.topic}'. "
                f"Error: {e.__class__.__name__}: {e}"
            ) from e

        sender = PulsarSender(self, producer)
        self._senders.append(sender)
        return sender

    def forget(self, sender: PulsarSender) -> None:
        if sender in self._senders:
            self._senders.remove(sender)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        failures = []
        for sender in list(self._senders):
            try:
                sender.close()
            except BrokerError as e:
                failures.append(str(e))
        if failures:
            raise BrokerError("; ".join(failures))


class PulsarConnection(BrokerConnection):
    def __init__(self, client: pulsar.Client, settings: dict[str, Any]):
        self.client = client
        self.started = False
        self._settings = settings
        self._closed = False

    def create_session(
        self, transacted: bool, acknowledge_mode: AcknowledgeMode
    ) -> BrokerSession:
        if self._closed:
            raise BrokerError("Connection is closed.")
        if transacted:
            raise BrokerError("Transacted sessions are not supported by the Pulsar provider.")
        return PulsarSession(self, acknowledge_mode, self._settings.get("producer", {}))

    def start(self) -> None:
        if self._closed:
            raise BrokerError("Connection is closed.")
        self.started = True

    def stop(self) -> None:
        if self._closed:
            raise BrokerError("Connection is closed.")
        self.started = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.started = False
        try:
            self.client.close()
        except Exception as e:
            raise BrokerError(f"Exception during Pulsar client closing: {e}") from e


class PulsarConnectionFactory(ConnectionFactory):
    def __init__(self, name: str, service_url: str, environment: dict[str, Any], settings: dict[str, Any]):
        self.name = name
        self.service_url = service_url
        self._environment = environment
        self._settings = settings

    def create_connection(self) -> BrokerConnection:
        try:
            client = pulsar.Client(
                self.service_url, **_client_options(self._environment, self._settings)
            )
        except Exception as e:
            raise BrokerError(
                f"Could not create a connection to {self.service_url}. "
                f"Error: {e.__class__.__name__}: {e}"
            ) from e
        return PulsarConnection(client, self._settings)


class PulsarDirectory(DirectorySession):
    """
    Naming session backed by a Pulsar cluster.

    Logical names come from the "bindings" section of the configuration:

        connection_factories:
          done: {operation_timeout_seconds: 10, producer: {send_timeout_millis: 5000}}
        destinations:
          q1: persistent://public/default/q1
    """

    def __init__(self, environment: dict[str, Any], bindings: dict[str, Any] | None = None):
        super().__init__(environment, bindings)
        self.service_url = environment[PROVIDER_URL]
        self.client: pulsar.Client | None = None

        try:
            self.client = pulsar.Client(self.service_url, **_client_options(environment, {}))
            # If the broker is not available or rejects the credentials, this call raises.
            self.client.get_topic_partitions(HEALTH_CHECK_TOPIC)
        except (pulsar.ConnectError, pulsar.Timeout) as e:
            self._abandon()
            raise DirectoryError(
                f"Could not reach broker at {self.service_url}. "
                f"Error: {e.__class__.__name__}. Check configuration or broker status."
            ) from e
        except Exception as e:
            self._abandon()
            raise DirectoryError(
                f"Cannot open naming session at {self.service_url}. "
                f"Error: {e.__class__.__name__}: {e}"
            ) from e

    def _abandon(self) -> None:
        if self.client:
            try:
                self.client.close()
            except Exception:
                pass
            self.client = None

    def lookup(self, name: str) -> Any:
        if self.client is None:
            raise DirectoryError("Naming session is closed.")

        factories = self.bindings.get("connection_factories") or {}
        destinations = self.bindings.get("destinations") or {}

        if name in factories:
            settings = dict(factories[name] or {})
            service_url = settings.pop("service_url", self.service_url)
            return PulsarConnectionFactory(name, service_url, self.environment, settings)

        if name in destinations:
            binding = destinations[name]
            topic = binding.get("topic", name) if isinstance(binding, dict) else (binding or name)
            return PulsarDestination(name, topic)

        raise DirectoryError(f"Name '{name}' is not bound in the naming session at {self.service_url}.")

    def close(self) -> None:
        if self.client is None:
            return
        client, self.client = self.client, None
        try:
            client.close()
        except Exception as e:
            raise DirectoryError(f"Exception during Pulsar naming session closing: {e}") from e
