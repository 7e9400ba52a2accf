"""
Core Error Handling System

Centralized error classes with actionable guidance for model resolution and routing.

Every error is both a raisable exception and an MCP-compliant error payload:
- Include "isError": true
- Include "code" for error categorization
- Include "suggestion" for actionable guidance
- Include "details" for additional context
"""

from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field


@dataclass(eq=False)
class RichMCPError(Exception):
    """
    Rich MCP-compliant error with actionable guidance.

    Raised by the engine layers and converted to a response dict at the
    surface (MCP tool wrapper, CLI) with to_dict().

    MCP tool execution errors should include:
    - isError: true (required)
    - code: error category (required)
    - error: human-readable message (required)
    - suggestion: actionable guidance (recommended)
    - details: additional context (optional)
    """

    code: str = ""
    error: str = ""
    suggestion: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    troubleshooting: Optional[Union[str, List[str]]] = None

    def __str__(self) -> str:
        return self.error or self.code

    def to_dict(self) -> Dict[str, Any]:
        """Convert to MCP-compliant error dict."""
        result: Dict[str, Any] = {
            "isError": True,
            "code": self.code,
            "error": self.error,
            "suggestion": self.suggestion,
        }
        if self.details:
            result["details"] = self.details
        if self.troubleshooting:
            result["troubleshooting"] = self.troubleshooting
        return result


# =============================================================================
# Resolution Errors
# =============================================================================


@dataclass(eq=False)
class ModelNotFoundError(RichMCPError):
    """
    Model identifier could not be standardized or has no file on the server.

    Example:
        raise ModelNotFoundError(
            model_name="flux1-dve.safetensors",
            reason="no registry entry or pattern matches",
            candidates=["flux1-dev.safetensors"],
        )
    """

    model_name: str = ""
    reason: str = ""
    standard_name: Optional[str] = None
    candidates: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.code = "MODEL_NOT_FOUND"
        self.error = f"Model not found: {self.model_name}"
        if self.reason:
            self.error = f"{self.error} ({self.reason})"
        self.suggestion = (
            "Run list_registry_models() to see supported models, or get_server_inventory() "
            "to see the files the ComfyUI server can load."
        )
        self.details = {"model_name": self.model_name}
        if self.reason:
            self.details["reason"] = self.reason
        if self.standard_name:
            self.details["standard_name"] = self.standard_name
        if self.candidates:
            self.details["candidates"] = self.candidates[:10]
        self.troubleshooting = [
            "Check the spelling and extension of the model file name",
            "Retry with allow_fuzzy=True to enable alias, similarity and pattern matching",
            "Make sure the checkpoint is in ComfyUI/models/checkpoints/ and refresh the server",
        ]


@dataclass(eq=False)
class ConfigError(RichMCPError):
    """
    Registry, alias table or builder table is malformed. Fatal, never retried.

    Example:
        raise ConfigError(
            message="Registry key has unsupported extension",
            reason=ConfigError.REGISTRY_ERROR,
            entries=["flux1-dev.ckpt"],
        )
    """

    REGISTRY_ERROR = "REGISTRY_ERROR"
    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_CONFIG = "MISSING_CONFIG"

    message: str = ""
    reason: str = INVALID_CONFIG
    entries: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.code = "CONFIG_ERROR"
        self.error = self.message or "Invalid configuration"
        self.suggestion = "Fix the configuration and restart; configuration errors are not retried."
        self.details = {"reason": self.reason}
        if self.entries:
            self.details["entries"] = self.entries[:20]


@dataclass(eq=False)
class RoutingError(RichMCPError):
    """
    No workflow builder could be selected, or the selected builder failed.

    Example:
        raise RoutingError(
            model_id="sdxl-base",
            reason="No workflow builder found",
            architecture="unknown",
        )
    """

    model_id: str = ""
    reason: str = ""
    architecture: Optional[str] = None
    variant: Optional[str] = None

    def __post_init__(self):
        self.code = "ROUTING_ERROR"
        self.error = f"Cannot route workflow for model {self.model_id}: {self.reason}"
        self.suggestion = (
            "Use detect_model_type() to check how the model is classified and "
            "select_workflow_builder() to see which builders are available."
        )
        self.details = {
            "model_id": self.model_id,
            "architecture": self.architecture or "unknown",
            "variant": self.variant or "unknown",
        }


# =============================================================================
# Transport Errors (inventory fetch)
# =============================================================================


@dataclass(eq=False)
class TransportError(RichMCPError):
    """Base class for failures talking to the ComfyUI server."""

    message: str = ""
    status: Optional[int] = None
    url: Optional[str] = None

    def _fill(self, code: str, default_message: str, suggestion: str) -> None:
        self.code = code
        self.error = self.message or default_message
        self.suggestion = suggestion
        self.details = {}
        if self.status is not None:
            self.details["status"] = self.status
        if self.url:
            self.details["url"] = self.url


@dataclass(eq=False)
class CredentialError(TransportError):
    """HTTP 401 from the ComfyUI server."""

    def __post_init__(self):
        self._fill(
            "CREDENTIAL_ERROR",
            "ComfyUI server rejected the request: unauthorized",
            "Check the credentials of the proxy or gateway in front of ComfyUI.",
        )


@dataclass(eq=False)
class PermissionDeniedError(TransportError):
    """HTTP 403 from the ComfyUI server."""

    def __post_init__(self):
        self._fill(
            "PERMISSION_DENIED",
            "ComfyUI server refused access to the model inventory",
            "The configured account is not allowed to read /object_info.",
        )


@dataclass(eq=False)
class ServiceUnavailableError(TransportError):
    """Any other HTTP status, or the server could not be reached."""

    def __post_init__(self):
        self._fill(
            "SERVICE_UNAVAILABLE",
            "ComfyUI server is unavailable",
            "Check that ComfyUI is running and COMFYUI_URL points at it.",
        )
        self.troubleshooting = (
            "1. Check the server: curl $COMFYUI_URL/system_stats\n"
            "2. Restart ComfyUI if it is not responding\n"
            "3. Retry; inventory fetch failures are never cached"
        )


TRANSPORT_ERROR_CODES = ("CREDENTIAL_ERROR", "PERMISSION_DENIED", "SERVICE_UNAVAILABLE")


# =============================================================================
# Guards and Factories
# =============================================================================


def has_error_kind(exc: BaseException, *codes: str) -> bool:
    """
    Check whether an exception is already a typed engine error.

    Args:
        exc: Exception to inspect.
        codes: Optional error codes to narrow the check.

    Returns:
        True if exc is a RichMCPError (with one of codes, when given).
    """
    if not isinstance(exc, RichMCPError):
        return False
    return not codes or exc.code in codes


def classify_http_status(status: Optional[int], message: str = "", url: Optional[str] = None) -> TransportError:
    """Build the transport error matching an HTTP status (None for connection failures)."""
    if status == 401:
        return CredentialError(message=message, status=status, url=url)
    if status == 403:
        return PermissionDeniedError(message=message, status=status, url=url)
    return ServiceUnavailableError(message=message, status=status, url=url)
