"""Command-line runner.

Runs a command under a ``ProcessSession``, optionally waits for a line of
output, then reaps the child and exits with its exit code.

Exit codes:
    <child code>: the child exited normally
    128 + N: the child was terminated by signal N
    2: the awaited output did not appear (timeout or EOF)
    127: the command could not be launched
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from collections.abc import Sequence

from . import __version__
from .config import Config, get_config
from .errors import OutputEOFError, OutputTimeoutError
from .runtime import ProcessSession, Stream

__all__ = ["main", "configure_logging", "build_parser"]

logger = logging.getLogger(__name__)

EXIT_PATTERN_NOT_FOUND = 2
EXIT_LAUNCH_FAILED = 127


def configure_logging(config: Config) -> None:
    """Configure log handlers for the CLI."""
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # Debug mode: write to a temp file
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # Third-party loggers stay at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("process_helper").setLevel(log_level)


def _parse_env(items: Sequence[str]) -> dict[str, str]:
    env: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got '{item}'")
        env[key] = value
    return env


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="process-helper",
        description="Run a command, capture its output and wait for a pattern",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--wait-for", metavar="PATTERN", help="Regex to wait for on stdout")
    parser.add_argument(
        "--timeout", type=float, default=None, help="Seconds to wait for PATTERN"
    )
    parser.add_argument(
        "--separate-stderr", action="store_true", help="Capture stderr separately"
    )
    parser.add_argument(
        "--echo",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Echo output as it arrives (default: PH_ECHO)",
    )
    parser.add_argument(
        "--env",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra environment variable for the command (repeatable)",
    )
    parser.add_argument(
        "--kill-after-match",
        action="store_true",
        help="Send SIGTERM once PATTERN has been seen",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and arguments")
    return parser


def _print_captured(session: ProcessSession) -> None:
    for line in session.drain_log(Stream.OUT):
        sys.stdout.write(line.text)
    for line in session.drain_log(Stream.ERR):
        sys.stderr.write(line.text)
    sys.stdout.flush()
    sys.stderr.flush()


def _exit_code(session: ProcessSession) -> int:
    if session.term_signal is not None:
        return 128 + int(session.term_signal)
    return session.exit_code or 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    config = get_config()
    configure_logging(config)

    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("no command given")

    try:
        env = _parse_env(args.env)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    if args.wait_for is not None:
        try:
            re.compile(args.wait_for)
        except re.error as e:
            parser.error(f"invalid --wait-for pattern '{args.wait_for}': {e}")

    echo = args.echo if args.echo is not None else config.echo
    session = ProcessSession(echo=echo)

    try:
        session.start(
            command,
            args.wait_for,
            args.timeout,
            env,
            separate_stderr=args.separate_stderr,
        )
    except OSError as e:
        logger.error(f"Failed to launch {command[0]}: {e}")
        return EXIT_LAUNCH_FAILED
    except (OutputTimeoutError, OutputEOFError) as e:
        logger.error(str(e))
        session.kill()
        session.wait_for_exit()
        if not echo:
            _print_captured(session)
        return EXIT_PATTERN_NOT_FOUND

    if args.wait_for is not None:
        logger.info(f"Matched '{args.wait_for}' pid={session.pid}")
        if args.kill_after_match:
            session.kill()

    session.wait_for_exit()
    if not echo:
        _print_captured(session)

    logger.debug(f"Command finished exit_status={session.exit_status}")
    return _exit_code(session)


if __name__ == "__main__":
    sys.exit(main())
