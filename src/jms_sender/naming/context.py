import importlib
from typing import Any

from ..core.config import ConnectionConfig
from ..core.errors import DirectoryError
from ..core.progress import ProgressSink, null_sink
from .interfaces import (
    DirectorySession,
    INITIAL_CONTEXT_FACTORY,
    OPERATION_TIMEOUT,
    PROVIDER_URL,
    SECURITY_CREDENTIALS,
    SECURITY_PRINCIPAL,
)


# Short aliases accepted by --icf; anything else must be a "module:Class" path.
CONTEXT_FACTORIES = {
    "pulsar": "jms_sender.providers.pulsar:PulsarDirectory",
}


def resolve_context_factory(identifier: str) -> type[DirectorySession]:
    """
    Turns a context-factory identifier into a DirectorySession class.

    The identifier is either an alias from CONTEXT_FACTORIES or a
    "package.module:ClassName" import path.
    """
    target = CONTEXT_FACTORIES.get(identifier, identifier)
    module_name, _, class_name = target.partition(":")
    if not module_name or not class_name:
        raise DirectoryError(
            f"Invalid context factory '{identifier}': expected one of "
            f"{sorted(CONTEXT_FACTORIES)} or 'package.module:ClassName'."
        )

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise DirectoryError(f"Cannot load context factory '{identifier}': {e}") from e

    if not (isinstance(factory, type) and issubclass(factory, DirectorySession)):
        raise DirectoryError(
            f"Context factory '{identifier}' is not a {DirectorySession.__name__}."
        )
    return factory


def build_environment(config: ConnectionConfig, timeout: int | None = None) -> dict[str, Any]:
    environment = {
        INITIAL_CONTEXT_FACTORY: config.context_factory,
        PROVIDER_URL: config.provider_url,
        SECURITY_PRINCIPAL: config.principal,
        SECURITY_CREDENTIALS: config.credential,
    }
    if timeout:
        environment[OPERATION_TIMEOUT] = timeout
    return environment


def open_naming_session(
    config: ConnectionConfig,
    bindings: dict[str, Any] | None = None,
    progress: ProgressSink = null_sink,
    timeout: int | None = None,
) -> DirectorySession:
    progress(
        "INFO",
        f"getting initial context ({config.provider_url}, user: {config.principal})...",
    )
    factory = resolve_context_factory(config.context_factory)
    environment = build_environment(config, timeout)

    try:
        return factory(environment, bindings or {})
    except DirectoryError:
        raise
    except Exception as e:
        raise DirectoryError(
            f"Cannot open naming session at {config.provider_url}: "
            f"{e.__class__.__name__}: {e}"
        ) from e
