"""
ComfyUI API Client

Low-level HTTP client for the ComfyUI endpoints the router reads: node info
(for the checkpoint inventory) and system stats (for availability checks).

Errors are returned as dicts rather than raised. HTTP failures carry the
status code so callers can tell an auth problem from an outage:
    {"error": "HTTP 401: Unauthorized", "status": 401}
"""

import functools
import json
import os
import time
import urllib.error
import urllib.request
from typing import Callable, Optional, TypeVar

# Retry configuration from environment
RETRY_MAX_ATTEMPTS = int(os.environ.get("COMFYUI_RETRY_ATTEMPTS", "3"))
RETRY_BACKOFF = float(os.environ.get("COMFYUI_RETRY_BACKOFF", "1.0"))
RETRY_MULTIPLIER = float(os.environ.get("COMFYUI_RETRY_MULTIPLIER", "2.0"))
REQUEST_TIMEOUT = int(os.environ.get("COMFYUI_REQUEST_TIMEOUT", "30"))

DEFAULT_URL = "http://localhost:8188"

# Retryable error patterns (401/403 are never retried)
RETRYABLE_ERRORS = [
    "timed out",
    "connection refused",
    "connection reset",
    "temporary failure",
    "service unavailable",
    "502",
    "503",
    "504",
]

T = TypeVar("T")


def retry(
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    backoff: float = RETRY_BACKOFF,
    multiplier: float = RETRY_MULTIPLIER,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying functions with exponential backoff.

    Retries both raised exceptions and returned error dicts whose message
    matches RETRYABLE_ERRORS.

    Args:
        max_attempts: Maximum number of attempts.
        backoff: Initial backoff delay in seconds.
        multiplier: Multiplier for backoff between retries.

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_error = None
            delay = backoff

            for attempt in range(max_attempts):
                try:
                    result = func(*args, **kwargs)

                    if isinstance(result, dict) and "error" in result:
                        error_str = str(result["error"]).lower()
                        is_retryable = any(pattern in error_str for pattern in RETRYABLE_ERRORS)

                        if is_retryable and attempt < max_attempts - 1:
                            last_error = result
                            time.sleep(delay)
                            delay *= multiplier
                            continue

                    return result

                except Exception as e:
                    last_error = e
                    error_str = str(e).lower()
                    is_retryable = any(pattern in error_str for pattern in RETRYABLE_ERRORS)

                    if is_retryable and attempt < max_attempts - 1:
                        time.sleep(delay)
                        delay *= multiplier
                        continue

                    raise

            # Exhausted retries
            if isinstance(last_error, dict):
                return last_error
            elif last_error:
                return {"error": str(last_error), "retried": max_attempts}
            return {"error": "Max retries exceeded"}

        return wrapper

    return decorator


class ComfyUIClient:
    """HTTP client for ComfyUI API."""

    def __init__(self, base_url: Optional[str] = None, timeout: int = REQUEST_TIMEOUT):
        self.base_url = (base_url or os.environ.get("COMFYUI_URL", DEFAULT_URL)).rstrip("/")
        self.timeout = timeout

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @retry()
    def request(self, endpoint: str, method: str = "GET", timeout: Optional[int] = None) -> dict:
        """Make HTTP request to ComfyUI API with automatic retry."""
        req = urllib.request.Request(self.url_for(endpoint), method=method)

        try:
            with urllib.request.urlopen(req, timeout=timeout or self.timeout) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            return {"error": f"HTTP {e.code}: {e.reason}", "status": e.code}
        except urllib.error.URLError as e:
            return {"error": str(e)}
        except json.JSONDecodeError:
            return {"error": "Invalid JSON response"}

    def get(self, endpoint: str, timeout: Optional[int] = None) -> dict:
        """GET request."""
        return self.request(endpoint, "GET", timeout=timeout)

    def is_available(self) -> bool:
        """Check if ComfyUI is reachable."""
        result = self.get("/system_stats")
        return "error" not in result

    def get_system_stats(self) -> dict:
        return self.get("/system_stats")

    def get_object_info(self, node_type: Optional[str] = None) -> dict:
        """Get node information, for one node type or all of them."""
        if node_type:
            return self.get(f"/object_info/{node_type}")
        return self.get("/object_info")


# Global client instance
_client: Optional[ComfyUIClient] = None


def get_client() -> ComfyUIClient:
    """Get or create global client instance."""
    global _client
    if _client is None:
        _client = ComfyUIClient()
    return _client


def set_client(client: Optional[ComfyUIClient]) -> None:
    """Replace the global client (None resets to a lazily created default)."""
    global _client
    _client = client
