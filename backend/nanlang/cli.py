"""Command-line runner: ``nanlang script.txt``.

Reads the whole script (``-`` means stdin), executes it and writes the output
to stdout. Exit status is 1 when the file cannot be read or a cap aborted the
run, 2 for usage errors.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import LOG_LEVEL
from .interpreter import Interpreter, LimitExceeded

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="nanlang", description="Run a nanLanguage script")
    p.add_argument("file", help="Script to run, or '-' to read from stdin")
    p.add_argument("--max-loop", type=int, default=None, help="Cap on iterations per loop (default: none)")
    p.add_argument("--max-steps", type=int, default=None, help="Cap on statements executed (default: none)")
    p.add_argument("--timeout", type=float, default=None, help="Wall-clock budget in seconds (default: none)")
    return p.parse_args(argv)


def read_script(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)

    try:
        code = read_script(args.file)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("cannot read %s: %s", args.file, e)
        print("Error: Could not open file.")
        return 1

    it = Interpreter()
    it.max_loop = args.max_loop
    it.max_steps = args.max_steps
    it.max_time_s = args.timeout
    try:
        it.execute(code)
    except LimitExceeded as e:
        logger.error("%s: %s", e.code, e)
        return 1
    except RecursionError:
        logger.error("RECURSION_LIMIT: Nesting too deep")
        return 1
    for warning in it.warnings:
        logger.warning(warning)
    return 0


if __name__ == "__main__":
    sys.exit(main())
