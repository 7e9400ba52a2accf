"""
Pytest fixtures shared by the engine, server and CLI tests
"""

import json
import logging
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# =============================================================================
# Deterministic Cache Fixtures
# =============================================================================


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class CountingFetcher:
    """Inventory fetcher that records calls and can be told to fail."""

    def __init__(self, files=None):
        self.files = list(files or [])
        self.calls = 0
        self.error = None

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.files)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return CountingFetcher(["FLUX1-DEV.safetensors", "flux1-schnell-Q4_K_S.gguf", "sd3.5_large.safetensors"])


@pytest.fixture
def manager(fetcher, clock):
    from comfyui_model_router.validation import ModelValidationManager

    return ModelValidationManager(fetch_fn=fetcher, now_fn=clock)


# =============================================================================
# Workflow Builder Fixtures
# =============================================================================


class RecordingBuilder:
    """Workflow builder stand-in that records its arguments."""

    def __init__(self, name: str):
        self.name = name
        self.calls = []

    def __call__(self, actual_file_name, params):
        self.calls.append((actual_file_name, params))
        return {"builder": self.name, "model": actual_file_name}


@pytest.fixture
def builders():
    from comfyui_model_router.router import WorkflowBuilderKey

    return {key: RecordingBuilder(key.value) for key in WorkflowBuilderKey}


@pytest.fixture
def workflow_router(builders):
    from comfyui_model_router.router import WorkflowRouter

    return WorkflowRouter(builders)


# =============================================================================
# Structured Logging Fixtures
# =============================================================================


class CapturingLogHandler(logging.Handler):
    """Handler that captures log records for testing."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)

    def get_json_logs(self):
        """Return list of parsed JSON log entries."""
        from comfyui_model_router.mcp_utils import JSONFormatter

        formatter = JSONFormatter()
        return [json.loads(formatter.format(record)) for record in self.records]

    def messages(self):
        return [record.getMessage() for record in self.records]

    def clear(self):
        self.records = []


@pytest.fixture
def capturing_logger():
    """Fixture providing a capturing log handler on the router logger."""
    logger = logging.getLogger("comfyui-model-router")

    handler = CapturingLogHandler()
    handler.setLevel(logging.DEBUG)
    logger.addHandler(handler)

    original_level = logger.level
    logger.setLevel(logging.DEBUG)

    yield handler

    logger.removeHandler(handler)
    logger.setLevel(original_level)
    handler.clear()


@pytest.fixture
def correlation_context():
    """Fixture providing correlation ID context management."""
    from comfyui_model_router.mcp_utils import set_correlation_id, clear_correlation_id

    def _set_cid(cid):
        set_correlation_id(cid)
        return cid

    yield _set_cid

    clear_correlation_id()
