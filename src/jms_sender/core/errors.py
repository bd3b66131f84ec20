class SenderError(Exception):
    """Base class for every error raised by the sender."""


class UsageError(SenderError):
    """The command line arguments are missing, malformed or conflicting."""


class DirectoryError(SenderError):
    """Naming session, name lookup or authentication failure."""


class BrokerError(SenderError):
    """Connection, session, start, stop or send failure on the broker."""


class MessageFileError(SenderError, OSError):
    """The message file could not be read."""


class CloseError(SenderError):
    """
    A single failure while releasing a resource.
    Collected into a CloseReport, never raised out of the teardown.
    """

    def __init__(self, kind: str, cause: BaseException):
        self.kind = kind
        self.cause = cause
        super().__init__(f"{kind}: {cause.__class__.__name__}: {cause}")
