"""
cmr CLI: model resolution and workflow routing for ComfyUI.

Usage:
    cmr resolve flux1-dev.safetensors
    cmr standardize "models/FLUX.1-dev-Q4_K_S.gguf" --fuzzy
    cmr validate comfyui/flux1-dev
    cmr detect flux-schnell
    cmr route flux-kontext-dev
    cmr explain comfyui/flux1-dev
    cmr dtype flux1-dev-fp8-e5m2.safetensors
    cmr models list --variant schnell --priority 2
    cmr models stats
    cmr inventory
    cmr cache stats --fetch
    cmr --url http://host:8188 validate flux1-schnell
"""

import argparse
import json
import os
import sys

from core.errors import RichMCPError

from .cli_commands import inventory as inventory_commands
from .cli_commands import models as models_commands
from .cli_commands import resolve as resolve_commands
from .cli_utils import (
    EXIT_ERROR,
    EXIT_OK,
    EXIT_VALIDATION,
    _add_common_args,
    _emit_error,
    _error,
    _is_pretty,
    _output,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmr",
        description="ComfyUI model resolution and workflow routing",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument("--url", help="ComfyUI server URL (overrides COMFYUI_URL env)")
    sub = parser.add_subparsers(dest="command", help="Available commands")

    resolve_commands.register_commands(sub, add_common=_add_common_args)
    models_commands.register_commands(sub, add_common=_add_common_args)
    inventory_commands.register_commands(sub, add_common=_add_common_args)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "url", None):
        os.environ["COMFYUI_URL"] = args.url

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_ERROR)

    func = getattr(args, "func", None)
    if func is None:
        # Subcommand group without subcommand (e.g., "cmr models")
        parser.parse_args([args.command, "--help"])
        sys.exit(EXIT_ERROR)

    pretty = args.pretty or _is_pretty()
    try:
        exit_code = func(args)
        sys.exit(exit_code or EXIT_OK)
    except RichMCPError as e:
        sys.exit(_emit_error(e, pretty))
    except json.JSONDecodeError as e:
        _output(_error(f"Invalid JSON: {e}", "INVALID_PARAMS"), pretty)
        sys.exit(EXIT_VALIDATION)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        _output(_error(str(e), "CLI_ERROR"), pretty)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
