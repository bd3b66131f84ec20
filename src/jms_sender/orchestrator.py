from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable

from .core.config import ConnectionConfig
from .core.errors import BrokerError, DirectoryError, MessageFileError, SenderError
from .core.inputs import resolve_message
from .core.message import TextMessage
from .core.progress import ProgressSink, loguru_sink
from .core.status import exit_code_for, report_exit_code
from .core.teardown import CloseReport, Teardown
from .naming.context import open_naming_session
from .naming.interfaces import (
    AcknowledgeMode,
    BrokerConnection,
    BrokerSession,
    ConnectionFactory,
    Destination,
    DirectorySession,
)


@dataclass
class SendResult:
    exit_code: int
    close_report: CloseReport
    message: TextMessage | None = None
    error: SenderError | None = None


@contextmanager
def _translate(error_class: type[SenderError], action: str):
    """Re-raises anything that is not already a SenderError as error_class."""
    try:
        yield
    except SenderError:
        raise
    except Exception as e:
        raise error_class(f"Error while {action}: {e.__class__.__name__}: {e}") from e


class SendOrchestrator:
    """
    Runs one send: acquires the naming session, connection factory,
    connection, session and destination in that order, dispatches a single
    text message and always releases what was acquired, in reverse order.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connection_factory_name: str,
        destination_name: str,
        bindings: dict[str, Any] | None = None,
        progress: ProgressSink = loguru_sink,
        timeout: int | None = None,
        naming_factory: Callable[..., DirectorySession] = open_naming_session,
    ):
        self.config = config
        self.connection_factory_name = connection_factory_name
        self.destination_name = destination_name
        self.bindings = bindings or {}
        self.timeout = timeout

        self._progress = progress
        self._naming_factory = naming_factory
        # set as soon as the broker accepted the message
        self._delivered: TextMessage | None = None

    def run(self, message: str | None = None, message_file: str | None = None) -> SendResult:
        teardown = Teardown(self._progress)
        error: SenderError | None = None
        self._delivered = None

        try:
            text = resolve_message(message, message_file, self._progress)

            naming = self._naming_factory(
                self.config, self.bindings, self._progress, self.timeout
            )
            teardown.register("naming session", naming.close)

            connection = self._create_connection(naming)
            teardown.register("queue connection", connection.close)

            session = self._create_session(connection)
            teardown.register("queue session", session.close)

            destination = self._lookup_destination(naming)

            self._dispatch(connection, session, destination, text)
        except (DirectoryError, BrokerError, MessageFileError) as e:
            error = e
            self._progress("ERROR", f"ERROR: {e}")
        finally:
            close_report = teardown.close_all()

        exit_code = exit_code_for(error)
        report_exit_code(exit_code, self._progress)
        return SendResult(exit_code, close_report, self._delivered, error)

    def _lookup(self, naming: DirectorySession, name: str, expected: type, kind: str) -> Any:
        with _translate(DirectoryError, f"looking up '{name}'"):
            bound = naming.lookup(name)
        if not isinstance(bound, expected):
            raise BrokerError(
                f"'{name}' is bound to a {bound.__class__.__name__}, not a {kind}."
            )
        return bound

    def _create_connection(self, naming: DirectorySession) -> BrokerConnection:
        name = self.connection_factory_name
        self._progress("INFO", f"looking up for '{name}' queue connection factory...")
        factory: ConnectionFactory = self._lookup(
            naming, name, ConnectionFactory, "queue connection factory"
        )

        self._progress("DEBUG", "creating a queue connection...")
        with _translate(BrokerError, "creating a queue connection"):
            return factory.create_connection()

    def _create_session(self, connection: BrokerConnection) -> BrokerSession:
        self._progress("DEBUG", "creating queue session...")
        with _translate(BrokerError, "creating a queue session"):
            return connection.create_session(False, AcknowledgeMode.AUTO_ACKNOWLEDGE)

    def _lookup_destination(self, naming: DirectorySession) -> Destination:
        name = self.destination_name
        self._progress("INFO", f"looking up for '{name}' queue...")
        return self._lookup(naming, name, Destination, "queue")

    def _dispatch(
        self,
        connection: BrokerConnection,
        session: BrokerSession,
        destination: Destination,
        text: str,
    ) -> None:
        with _translate(BrokerError, f"sending the message to '{destination.name}'"):
            connection.start()

            self._progress("DEBUG", "sending a text message to queue...")
            message = session.create_text_message(text)
            with session.create_sender(destination) as sender:
                self._progress("DEBUG", f"message: '{text}'")
                sender.send(message)
                self._delivered = message

            connection.stop()
        self._progress("SUCCESS", "message has been sent successfully")
