from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from ..core.message import TextMessage


INITIAL_CONTEXT_FACTORY = "initial_context_factory"
PROVIDER_URL = "provider_url"
SECURITY_PRINCIPAL = "security_principal"
SECURITY_CREDENTIALS = "security_credentials"
# Optional, seconds; providers fall back to their own default when absent.
OPERATION_TIMEOUT = "operation_timeout_seconds"

REQUIRED_ENVIRONMENT = (
    INITIAL_CONTEXT_FACTORY,
    PROVIDER_URL,
    SECURITY_PRINCIPAL,
    SECURITY_CREDENTIALS,
)


class AcknowledgeMode(Enum):
    AUTO_ACKNOWLEDGE = 1
    CLIENT_ACKNOWLEDGE = 2
    DUPS_OK_ACKNOWLEDGE = 3


class ICloseable(ABC):
    """Defines a contract for resources that must be released exactly once."""

    @abstractmethod
    def close(self) -> None:
        """Releases the resource."""
        raise NotImplementedError


class DirectorySession(ICloseable):
    """
    An authenticated handle into a naming service, used to resolve logical
    names into broker objects.

    Implementations are constructed with the environment mapping (all the
    REQUIRED_ENVIRONMENT keys) and the name bindings from the configuration.
    The constructor must raise DirectoryError when the session cannot be
    established.
    """

    def __init__(self, environment: dict[str, str], bindings: dict[str, Any] | None = None):
        self.environment = environment
        self.bindings = bindings or {}

    @abstractmethod
    def lookup(self, name: str) -> Any:
        """
        Returns the object bound to the logical name.
        Raises DirectoryError when nothing is bound to it.
        """
        raise NotImplementedError


class ConnectionFactory(ABC):
    @abstractmethod
    def create_connection(self) -> "BrokerConnection":
        """Opens a new connection to the broker. Raises BrokerError."""
        raise NotImplementedError


class Destination(ABC):
    """A named delivery target (queue)."""

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError


class Sender(ICloseable):
    """A short lived producer bound to one destination."""

    @abstractmethod
    def send(self, message: TextMessage) -> None:
        """Delivers the message. Raises BrokerError."""
        raise NotImplementedError

    def __enter__(self) -> "Sender":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is None:
            self.close()
            return

        # the error already in flight stays the one reported
        try:
            self.close()
        except Exception as close_error:
            exc.add_note(
                f"Closing the sender also failed: {close_error.__class__.__name__}: {close_error}"
            )


class BrokerSession(ICloseable):
    @abstractmethod
    def create_text_message(self, text: str) -> TextMessage:
        raise NotImplementedError

    @abstractmethod
    def create_sender(self, destination: Destination) -> Sender:
        """Raises BrokerError when no sender can be bound to the destination."""
        raise NotImplementedError


class BrokerConnection(ICloseable):
    """
    Defines the connection lifecycle: it must be started before messages are
    accepted for delivery and stopped afterwards.
    """

    @abstractmethod
    def create_session(
        self, transacted: bool, acknowledge_mode: AcknowledgeMode
    ) -> BrokerSession:
        raise NotImplementedError

    @abstractmethod
    def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError
