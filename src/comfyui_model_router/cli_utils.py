"""Shared CLI utilities: exit codes, output helpers and error classification."""

import argparse
import json
import os
import sys
from pathlib import Path

from core.errors import TRANSPORT_ERROR_CODES, RichMCPError

# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_VALIDATION = 3
EXIT_CONNECTION = 5
EXIT_NOT_FOUND = 6

_VALIDATION_CODES = {"ROUTING_ERROR", "CONFIG_ERROR", "VALIDATION_ERROR", "INVALID_PARAMS"}


def _exit_code_for_error(code: str) -> int:
    """Map an error code to an exit code."""
    if code == "MODEL_NOT_FOUND":
        return EXIT_NOT_FOUND
    if code in TRANSPORT_ERROR_CODES:
        return EXIT_CONNECTION
    if code in _VALIDATION_CODES:
        return EXIT_VALIDATION
    return EXIT_ERROR


def _output(data: dict, pretty: bool = False) -> None:
    """Write JSON data to stdout (results/data only)."""
    if pretty:
        json.dump(data, sys.stdout, indent=2, default=str)
    else:
        json.dump(data, sys.stdout, default=str)
    sys.stdout.write("\n")
    sys.stdout.flush()


def _msg(text: str) -> None:
    """Write a status/progress message to stderr."""
    sys.stderr.write(text)
    if not text.endswith("\n"):
        sys.stderr.write("\n")
    sys.stderr.flush()


def _error(message: str, code: str = "CLI_ERROR") -> dict:
    return {"error": message, "code": code}


def _emit_error(exc: RichMCPError, pretty: bool = False) -> int:
    """Print a typed engine error as its JSON envelope and return the exit code."""
    _output(exc.to_dict(), pretty)
    return _exit_code_for_error(exc.code)


def _is_pretty() -> bool:
    return os.environ.get("CMR_PRETTY", "").lower() in ("1", "true", "yes")


def _parse_json_arg(value: str) -> dict:
    """Parse a JSON string argument, supporting both raw JSON and @file references."""
    if value.startswith("@"):
        path = Path(value[1:])
        if not path.exists():
            _msg(json.dumps(_error(f"File not found: {path}", "INVALID_PARAMS")))
            sys.exit(EXIT_VALIDATION)
        return json.loads(path.read_text())
    return json.loads(value)


def _add_common_args(parser) -> None:
    """Add --pretty flag; left unset unless given so the top-level flag survives."""
    parser.add_argument("--pretty", action="store_true", default=argparse.SUPPRESS, help="Pretty-print JSON output")


def _add_fuzzy_arg(parser) -> None:
    parser.add_argument(
        "--fuzzy",
        action="store_true",
        help="Enable alias, similarity and pattern matching (default: registry names only)",
    )
