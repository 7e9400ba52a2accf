"""
Core Error Handling
"""

from .errors import (
    RichMCPError,
    ModelNotFoundError,
    ConfigError,
    RoutingError,
    TransportError,
    CredentialError,
    PermissionDeniedError,
    ServiceUnavailableError,
    TRANSPORT_ERROR_CODES,
    has_error_kind,
    classify_http_status,
)

__all__ = [
    "RichMCPError",
    "ModelNotFoundError",
    "ConfigError",
    "RoutingError",
    "TransportError",
    "CredentialError",
    "PermissionDeniedError",
    "ServiceUnavailableError",
    "TRANSPORT_ERROR_CODES",
    "has_error_kind",
    "classify_http_status",
]
