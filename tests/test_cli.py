"""
Tests for the cmr CLI: argument parsing, dispatch and exit codes.

Engine modules have their own tests; these verify the CLI layer: arg parsing,
JSON output and the mapping from typed errors to exit codes.
"""

import json
from unittest.mock import patch

import pytest

from core.errors import CredentialError
from comfyui_model_router.cli import build_parser, main
from comfyui_model_router.cli_utils import (
    EXIT_CONNECTION,
    EXIT_ERROR,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_VALIDATION,
    _exit_code_for_error,
    _output,
    _parse_json_arg,
)

SERVER_FILES = ["FLUX1-DEV.safetensors", "flux1-schnell-Q4_K_S.gguf"]


def run_cli(argv, capsys):
    """Run main() and return (exit code, parsed stdout JSON or None)."""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    out = capsys.readouterr().out.strip()
    return exc_info.value.code, (json.loads(out) if out else None)


class TestParserConstruction:
    """Test argument parser builds correctly."""

    def test_parser_has_all_commands(self):
        parser = build_parser()
        commands = [
            ["resolve", "flux1-dev.safetensors"],
            ["standardize", "flux1-dev", "--fuzzy"],
            ["validate", "comfyui/flux1-dev"],
            ["detect", "flux-dev"],
            ["route", "flux-dev"],
            ["explain", "flux-dev", "--fuzzy"],
            ["dtype", "flux1-dev.safetensors", "--params", "{}"],
            ["models", "list", "--priority", "2"],
            ["models", "stats"],
            ["models", "priority", "flux1-dev.safetensors"],
            ["inventory"],
            ["cache", "stats", "--fetch"],
            ["cache", "clear"],
        ]
        for argv in commands:
            args = parser.parse_args(argv)
            assert callable(args.func), argv

    def test_global_url(self):
        args = build_parser().parse_args(["--url", "http://gpu-box:8188", "inventory"])
        assert args.url == "http://gpu-box:8188"

    def test_pretty_before_subcommand(self):
        """Test the global --pretty is not reset by the subcommand's own flag"""
        parser = build_parser()
        assert parser.parse_args(["--pretty", "models", "stats"]).pretty is True
        assert parser.parse_args(["models", "stats", "--pretty"]).pretty is True
        assert parser.parse_args(["models", "stats"]).pretty is False

    def test_pretty_before_subcommand_output(self, capsys, monkeypatch):
        monkeypatch.delenv("CMR_PRETTY", raising=False)
        with pytest.raises(SystemExit):
            main(["--pretty", "models", "stats"])
        assert "\n  " in capsys.readouterr().out

    def test_priority_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["models", "list", "--priority", "4"])


class TestOutputHelpers:
    def test_output_json(self, capsys):
        _output({"a": 1})
        assert json.loads(capsys.readouterr().out) == {"a": 1}

    def test_output_pretty(self, capsys):
        _output({"a": 1}, pretty=True)
        assert "\n  " in capsys.readouterr().out

    def test_inline_json(self):
        assert _parse_json_arg('{"weight_dtype": "fp16"}') == {"weight_dtype": "fp16"}

    def test_file_reference(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text('{"steps": 4}')
        assert _parse_json_arg(f"@{path}") == {"steps": 4}

    def test_file_not_found(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            _parse_json_arg(f"@{tmp_path / 'missing.json'}")
        assert exc_info.value.code == EXIT_VALIDATION

    @pytest.mark.parametrize(
        "code,exit_code",
        [
            ("MODEL_NOT_FOUND", EXIT_NOT_FOUND),
            ("CREDENTIAL_ERROR", EXIT_CONNECTION),
            ("SERVICE_UNAVAILABLE", EXIT_CONNECTION),
            ("ROUTING_ERROR", EXIT_VALIDATION),
            ("CONFIG_ERROR", EXIT_VALIDATION),
            ("SOMETHING_ELSE", EXIT_ERROR),
        ],
    )
    def test_exit_code_for_error(self, code, exit_code):
        assert _exit_code_for_error(code) == exit_code


class TestResolutionCommands:
    def test_resolve_found(self, capsys):
        code, out = run_cli(["resolve", "FLUX1-DEV.safetensors"], capsys)
        assert code == EXIT_OK
        assert out["found"] is True
        assert out["model"] == "flux1-dev.safetensors"
        assert out["priority"] == 1

    def test_resolve_not_found(self, capsys):
        code, out = run_cli(["resolve", "flux-dev.safetensors"], capsys)
        assert code == EXIT_NOT_FOUND
        assert out == {"found": False, "name": "flux-dev.safetensors"}

    def test_standardize_fuzzy(self, capsys):
        code, out = run_cli(["standardize", "flux-dev.safetensors", "--fuzzy"], capsys)
        assert code == EXIT_OK
        assert out["standard_name"] == "flux1-dev.safetensors"
        assert out["method"] == "alias"

    def test_standardize_strict_failure(self, capsys):
        code, out = run_cli(["standardize", "flux-dev.safetensors"], capsys)
        assert code == EXIT_NOT_FOUND
        assert out["code"] == "MODEL_NOT_FOUND"
        assert out["isError"] is True

    @patch("comfyui_model_router.validation.fetch_checkpoint_inventory")
    def test_validate(self, mock_fetch, capsys):
        mock_fetch.return_value = SERVER_FILES
        code, out = run_cli(["validate", "comfyui/flux1-dev"], capsys)
        assert code == EXIT_OK
        assert out["actual_file_name"] == "FLUX1-DEV.safetensors"

    @patch("comfyui_model_router.validation.fetch_checkpoint_inventory")
    def test_validate_connection_failure(self, mock_fetch, capsys):
        mock_fetch.side_effect = CredentialError(status=401)
        code, out = run_cli(["validate", "flux1-dev"], capsys)
        assert code == EXIT_CONNECTION
        assert out["code"] == "CREDENTIAL_ERROR"

    def test_detect(self, capsys):
        code, out = run_cli(["detect", "flux-schnell"], capsys)
        assert code == EXIT_OK
        assert out["variant"] == "schnell"

    def test_detect_unknown(self, capsys):
        code, out = run_cli(["detect", "stable-diffusion-v1-5"], capsys)
        assert code == EXIT_NOT_FOUND
        assert out["architecture"] == "unknown"

    def test_route(self, capsys):
        code, out = run_cli(["route", "comfyui/flux-kontext-dev"], capsys)
        assert code == EXIT_OK
        assert out["builder"] == "flux-kontext"
        assert out["matched_by"] == "exact"

    def test_route_unsupported(self, capsys):
        code, out = run_cli(["route", "sdxl-base"], capsys)
        assert code == EXIT_VALIDATION
        assert out["code"] == "ROUTING_ERROR"

    @patch("comfyui_model_router.validation.fetch_checkpoint_inventory")
    def test_explain(self, mock_fetch, capsys):
        mock_fetch.return_value = SERVER_FILES
        code, out = run_cli(["explain", "flux1-schnell-Q4_K_S"], capsys)
        assert code == EXIT_OK
        assert out["builder"] == "flux-schnell"
        assert out["errors"] == []

    def test_dtype(self, capsys):
        code, out = run_cli(["dtype", "flux1-dev-fp8-e5m2.safetensors"], capsys)
        assert code == EXIT_OK
        assert out["weight_dtype"] == "fp8_e5m2"

    def test_dtype_params_override(self, capsys):
        code, out = run_cli(["dtype", "flux1-dev-fp8-e5m2.safetensors", "--params", '{"weight_dtype": "fp16"}'], capsys)
        assert out["weight_dtype"] == "fp16"

    def test_dtype_invalid_json(self, capsys):
        code, out = run_cli(["dtype", "x.safetensors", "--params", "{bad"], capsys)
        assert code == EXIT_VALIDATION
        assert out["code"] == "INVALID_PARAMS"


class TestModelCommands:
    def test_list_filters(self, capsys):
        code, out = run_cli(["models", "list", "--variant", "schnell", "--priority", "1"], capsys)
        assert code == EXIT_OK
        assert "flux1-schnell.safetensors" in out["models"]
        assert out["count"] == len(out["models"])

    def test_list_unknown_variant(self, capsys):
        code, out = run_cli(["models", "list", "--variant", "sdxl"], capsys)
        assert code == EXIT_VALIDATION
        assert out["code"] == "VALIDATION_ERROR"

    def test_stats(self, capsys):
        code, out = run_cli(["models", "stats"], capsys)
        assert code == EXIT_OK
        assert out["total"] > 0

    def test_priority_unknown(self, capsys):
        code, out = run_cli(["models", "priority", "stable-diffusion-v1-5.ckpt"], capsys)
        assert code == EXIT_NOT_FOUND


class TestInventoryCommands:
    @patch("comfyui_model_router.discovery.list_loader_models")
    def test_inventory(self, mock_list, capsys):
        mock_list.side_effect = lambda node_type, input_name, client: {
            "CheckpointLoaderSimple": ["sd3.5_large.safetensors"],
            "UNETLoader": ["flux1-dev.safetensors"],
        }[node_type]
        code, out = run_cli(["inventory"], capsys)
        assert code == EXIT_OK
        assert out == {"files": ["sd3.5_large.safetensors", "flux1-dev.safetensors"], "count": 2}

    @patch("comfyui_model_router.validation.fetch_checkpoint_inventory")
    def test_cache_stats_fetch(self, mock_fetch, capsys):
        mock_fetch.return_value = SERVER_FILES
        code, out = run_cli(["cache", "stats", "--fetch"], capsys)
        assert code == EXIT_OK
        assert out["cached"] is True
        assert out["entry_count"] == 2

    def test_cache_clear(self, capsys):
        code, out = run_cli(["cache", "clear"], capsys)
        assert code == EXIT_OK
        assert out["cleared"] is True
        assert out["cached"] is False


class TestDispatch:
    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == EXIT_ERROR

    def test_group_without_subcommand(self, capsys):
        with pytest.raises(SystemExit):
            main(["models"])
