import getpass
from pathlib import Path
from typing import Callable

from .errors import MessageFileError, UsageError
from .progress import ProgressSink, null_sink


def _is_set(value) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str) and value == "":
        return False
    return True


def validate_exactly_one(group: str, **options) -> str:
    """
    Checks that exactly one option of a mutually exclusive group was given.

    Args:
        group: Human readable name of the group, used in the error message.
        options: Option name mapped to its parsed value. None, "" and False
                 count as not given.

    Returns:
        The name of the option that was given.

    Raises:
        UsageError: if none or more than one of the options was given.
    """
    given = [name for name, value in options.items() if _is_set(value)]
    if len(given) == 1:
        return given[0]

    names = ", ".join(f"'{name}'" for name in options)
    if not given:
        raise UsageError(f"Missing {group}: exactly one of {names} is required.")
    conflicting = ", ".join(f"'{name}'" for name in given)
    raise UsageError(f"Conflicting {group} options {conflicting}: only one of {names} is allowed.")


def resolve_password(
    password: str | None,
    interactive: bool,
    prompt: Callable[[str], str] = getpass.getpass,
) -> str:
    if _is_set(password):
        return password
    return prompt("Password for the connecting user: ") if interactive else ""


def read_message_file(path: str, progress: ProgressSink = null_sink) -> str:
    progress("DEBUG", f"reading message from '{path}' file...")
    try:
        return Path(path).read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MessageFileError(f"Cannot read message file '{path}': {e}") from e


def resolve_message(
    message: str | None,
    message_file: str | None,
    progress: ProgressSink = null_sink,
) -> str:
    """Returns the literal message, or the file content untouched."""
    if _is_set(message):
        return message
    return read_message_file(message_file, progress)
