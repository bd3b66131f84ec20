import sys
import os
import yaml
import getpass
import argparse
from typing import Callable
from loguru import logger

from .core.config import (
    ConnectionConfig,
    DEFAULT_CONTEXT_FACTORY,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PROTOCOL,
    DEFAULT_USER,
)
from .core.errors import UsageError
from .core.inputs import resolve_password, validate_exactly_one
from .core.progress import loguru_sink
from .core.status import EXIT_CODES, USAGE_ERROR, report_exit_code
from .orchestrator import SendOrchestrator


DEFAULT_CONFIG = "./config.yaml"
DEFAULT_TIMEOUT = 30


class _HelpFormatter(
    argparse.ArgumentDefaultsHelpFormatter, argparse.RawDescriptionHelpFormatter
):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


class _HelpAction(argparse.Action):
    """Prints the help and exits with the usage error code."""

    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None):
        super().__init__(option_strings, dest=dest, default=default, nargs=0, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        parser.exit(USAGE_ERROR)


def create_parser():
    exit_codes = "\n".join(f"  {code}  {text}" for code, text in EXIT_CODES.items())
    parser = _ArgumentParser(
        prog="jms-sender",
        description="JMS-style message sender command-line tool. "
        "This tool can send a text message to the given queue.",
        epilog=f"Exit codes:\n{exit_codes}",
        formatter_class=_HelpFormatter,
        add_help=False,
    )

    parser.add_argument("-?", "--help", action=_HelpAction, help="Display this help and exit.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Provide additional details as to what the tool is doing.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="FILE",
        help=f"YAML config file with logging settings and name bindings. {DEFAULT_CONFIG} is read when present.",
    )
    parser.add_argument(
        "-I",
        "--icf",
        dest="context_factory",
        default=DEFAULT_CONTEXT_FACTORY,
        help="Initial context factory: a registered alias or 'package.module:ClassName'.",
    )

    connection = parser.add_argument_group("connection")
    connection.add_argument("-T", "--protocol", default=DEFAULT_PROTOCOL, help="Protocol used for connecting to the broker.")
    connection.add_argument("-H", "--host", default=DEFAULT_HOST, help="Hostname of the broker.")
    connection.add_argument("-P", "--port", type=int, default=DEFAULT_PORT, help="Listening port of the broker.")
    connection.add_argument("-u", "--user", default=DEFAULT_USER, help="Username for the broker.")
    connection.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        metavar="SECONDS",
        help="Timeout of each broker operation.",
    )

    names = parser.add_argument_group("names")
    names.add_argument(
        "-c", "--cf", dest="connection_factory", required=True,
        help="The logical name of the queue connection factory.",
    )
    names.add_argument(
        "-q", "--queue", required=True,
        help="The logical name of the queue where the message will be sent.",
    )

    password = parser.add_argument_group("password", "Specify a password for the connecting user, exactly one of:")
    password.add_argument("-p", "--password", default=None, help="Password for the connecting user.")
    password.add_argument(
        "-i",
        "--iPassword",
        dest="interactive_password",
        action="store_true",
        help="Interactive way to get the password for the connecting user.",
    )

    message = parser.add_argument_group("message", "Specify the message, exactly one of:")
    message.add_argument("-m", "--message", default=None, help="The message will be sent to the queue.")
    message.add_argument("-f", "--message-file", default=None, metavar="FILE", help="The path to the message file.")

    return parser


def load_config(path: str | None) -> dict:
    config_path = os.path.join(os.getcwd(), path or DEFAULT_CONFIG)

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        if path is None:
            return {}
        raise UsageError(f"Config file not found in '{config_path}'")
    except yaml.YAMLError as e:
        raise UsageError(f"Syntax error in YAML file '{config_path}': {e}")

    if not isinstance(config, dict):
        raise UsageError(f"Config file '{config_path}' must contain a mapping.")
    return config


def configure_logging(config: dict, verbose: bool) -> str:
    log_level = str((config.get("logging") or {}).get("level", "INFO")).upper()
    if verbose:
        log_level = "DEBUG"
    logger.remove()
    logger.add(sys.stderr, level=log_level, colorize=True)
    logger.debug(f"Logger level set to: {log_level}")
    return log_level


def main(argv: list[str] | None = None, prompt: Callable[[str], str] = getpass.getpass) -> int:
    parser = create_parser()

    try:
        args = parser.parse_args(argv)
        config = load_config(args.config)
        configure_logging(config, args.verbose)
        if config:
            logger.debug("Config loaded successfully.")

        validate_exactly_one(
            "password", password=args.password, iPassword=args.interactive_password
        )
        validate_exactly_one(
            "message", message=args.message, message_file=args.message_file
        )
    except UsageError as e:
        logger.error(f"ERROR: {e}")
        parser.print_usage(sys.stderr)
        report_exit_code(USAGE_ERROR, loguru_sink)
        return USAGE_ERROR

    try:
        credential = resolve_password(args.password, args.interactive_password, prompt)
    except (EOFError, KeyboardInterrupt):
        logger.error("ERROR: No password was entered.")
        report_exit_code(USAGE_ERROR, loguru_sink)
        return USAGE_ERROR

    connection_config = ConnectionConfig(
        protocol=args.protocol,
        host=args.host,
        port=args.port,
        principal=args.user,
        credential=credential,
        context_factory=args.context_factory,
    )
    logger.debug(f"Connecting with {connection_config!r}")

    orchestrator = SendOrchestrator(
        connection_config,
        args.connection_factory,
        args.queue,
        bindings=config.get("bindings", {}),
        progress=loguru_sink,
        timeout=args.timeout,
    )
    result = orchestrator.run(args.message, args.message_file)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
