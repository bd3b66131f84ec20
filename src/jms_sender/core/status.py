from .errors import BrokerError, DirectoryError, MessageFileError, UsageError
from .progress import ProgressSink


NO_ERROR = 0
USAGE_ERROR = 1
RUNTIME_ERROR = 2

EXIT_CODES = {
    NO_ERROR: "Successful program execution.",
    USAGE_ERROR: "Usage error. The user input for the command was incorrect.",
    RUNTIME_ERROR: "An unexpected error appeared while sending the message.",
}


def exit_code_for(error: BaseException | None) -> int:
    """
    Maps the outcome of the send workflow to the process exit code.
    Teardown failures are never passed in here.
    """
    if error is None:
        return NO_ERROR
    if isinstance(error, UsageError):
        return USAGE_ERROR
    if isinstance(error, (DirectoryError, BrokerError, MessageFileError, OSError)):
        return RUNTIME_ERROR
    raise TypeError(f"Unexpected error type {error.__class__.__name__}") from error


def report_exit_code(exit_code: int, progress: ProgressSink) -> None:
    level = "SUCCESS" if exit_code == NO_ERROR else "ERROR"
    progress(level, f"Return code: {exit_code}")
