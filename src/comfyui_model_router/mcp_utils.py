"""
MCP Utilities

Structured logging, correlation ids and MCP-compliant response envelopes
shared by the engine, the MCP server and the CLI.
"""

import time
import uuid
import json
import logging
import functools
from datetime import datetime
from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from contextvars import ContextVar

from core.errors import RichMCPError

# =============================================================================
# Structured Logging
# =============================================================================

LOGGER_NAME = "comfyui-model-router"

logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(logging.INFO)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for machine parseability."""

    def format(self, record):
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        log_entry = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "correlation_id"):
            log_entry["correlation_id"] = record.correlation_id
        if hasattr(record, "custom_fields"):
            log_entry.update(record.custom_fields)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, separators=(",", ":"), default=str)


if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def set_correlation_id(cid: str):
    """Set correlation ID for current context."""
    correlation_id_var.set(cid)


def get_correlation_id() -> str:
    """Get current correlation ID or generate new one."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = str(uuid.uuid4())[:8]
        correlation_id_var.set(cid)
    return cid


def clear_correlation_id():
    correlation_id_var.set(None)


def log_structured(level: str, message: str, **kwargs):
    """Emit structured JSON log with correlation ID and custom fields."""
    cid = get_correlation_id()
    extra = {"correlation_id": cid}
    if kwargs:
        extra["custom_fields"] = kwargs
    getattr(logger, level)(message, extra=extra)


@dataclass
class ToolInvocation:
    """Track a tool invocation for logging with correlation support."""

    tool_name: str
    invocation_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    correlation_id: str = field(default_factory=get_correlation_id)
    start_time: float = field(default_factory=time.time)

    def complete(self, status: str = "success", error: Optional[str] = None, code: Optional[str] = None) -> Dict[str, Any]:
        """Log completion with structured JSON format."""
        latency_ms = (time.time() - self.start_time) * 1000
        log_entry = {
            "tool": self.tool_name,
            "invocation_id": self.invocation_id,
            "correlation_id": self.correlation_id,
            "latency_ms": round(latency_ms, 2),
            "status": status,
        }
        if error:
            log_entry["error"] = error
        if code:
            log_entry["code"] = code

        if status == "success":
            log_structured("info", "tool_completed", **log_entry)
        else:
            log_structured("error", "tool_failed", **log_entry)

        return log_entry


# =============================================================================
# MCP-Compliant Responses
# =============================================================================


def mcp_error(
    message: str,
    code: str = "TOOL_ERROR",
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create an MCP-compliant error response.

    Example:
        return mcp_error("Unknown builder key", "VALIDATION_ERROR", {"key": "sdxl"})
    """
    result: Dict[str, Any] = {
        "error": message,
        "code": code,
        "isError": True,
    }
    if details:
        result["details"] = details
    return result


def mcp_success(
    data: Any,
    message: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create an MCP-compliant success response.

    Args:
        data: The response data (dicts are copied, anything else goes under "data")
        message: Optional success message
        metadata: Optional metadata (stored in _meta)
    """
    if isinstance(data, dict):
        result = data.copy()
    else:
        result = {"data": data}

    if message:
        result["message"] = message

    if metadata:
        result["_meta"] = metadata

    return result


# =============================================================================
# Tool Decorator
# =============================================================================


def mcp_tool_wrapper(func):
    """
    Decorator that adds structured logging and error envelopes to tools.

    Typed engine errors become their own to_dict() envelope; anything else
    becomes INTERNAL_ERROR. Tools never raise across the MCP boundary.

    Example:
        @mcp.tool()
        @mcp_tool_wrapper
        def my_tool(param: str) -> dict:
            ...
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        tool_name = func.__name__
        invocation = ToolInvocation(tool_name)

        try:
            result = func(*args, **kwargs)
        except RichMCPError as e:
            invocation.complete("error", str(e), e.code)
            return e.to_dict()
        except Exception as e:
            logger.exception("Unhandled error in tool %s", tool_name)
            invocation.complete("error", str(e), "INTERNAL_ERROR")
            return mcp_error(str(e), "INTERNAL_ERROR")

        if isinstance(result, dict) and result.get("isError"):
            invocation.complete("error", result.get("error"), result.get("code"))
        else:
            invocation.complete("success")
        return result

    return wrapper
