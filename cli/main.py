"""CLI entry point."""

import os
import shlex
import sys

from common.logging_config import setup_component_logging
from cli.constants import HELP_TEXT
from cli.parser import ParseError, parse_command
from cli.repl import dispatch_command, repl_loop

LOGGED_COMPONENTS = ('cli', 'engine', 'clients', 'common')


def run_once(args: list[str]) -> int:
    """
    Run a single command given on the command line.

    Returns:
        Process exit code: 0 on success, 1 on error
    """
    if args[0] in ('help', '--help', '-h'):
        print(HELP_TEXT)
        return 0

    try:
        cmd_obj = parse_command(shlex.join(args))
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = dispatch_command(cmd_obj)
    print(result)
    return 1 if result.startswith("Error") else 0


def main() -> None:
    """Entry point for CLI."""
    args = sys.argv[1:]
    debug = '--debug' in args
    if debug:
        args = [arg for arg in args if arg != '--debug']

    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')
    logger = setup_component_logging(LOGGED_COMPONENTS, log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")

    if args:
        sys.exit(run_once(args))

    logger.info("CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
