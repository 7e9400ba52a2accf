"""
ComfyUI Model Router

Resolves free-form model identifiers against a ComfyUI server: registry
lookup, name standardization, TTL-cached existence validation, architecture
detection and workflow builder routing. Exposed as a library, an MCP server
(comfyui_model_router.server) and the cmr CLI.
"""

__version__ = "0.1.0"

from .model_registry import (
    MODEL_REGISTRY,
    MODEL_ALIASES,
    RegistryEntry,
    get_model_config,
    get_models_by_variant,
    get_models_by_priority,
    get_all_model_names,
)
from .resolver import resolve_model, resolve_model_strict, is_valid_model, get_all_models
from .standardizer import StandardizedModel, standardize, try_standardize, is_standardizable
from .type_detector import DetectionResult, detect_model_type
from .router import WorkflowBuilderKey, WorkflowRouter, BuilderSelection, select_builder
from .validation import InventoryCache, ModelValidationManager, ValidationResult
from .engine import ModelResolutionEngine
from .types import ArchitectureFamily, ModelVariant, Precision, ModelArchitecture, DetectionMethod, MatchMethod

__all__ = [
    "__version__",
    "MODEL_REGISTRY",
    "MODEL_ALIASES",
    "RegistryEntry",
    "get_model_config",
    "get_models_by_variant",
    "get_models_by_priority",
    "get_all_model_names",
    "resolve_model",
    "resolve_model_strict",
    "is_valid_model",
    "get_all_models",
    "StandardizedModel",
    "standardize",
    "try_standardize",
    "is_standardizable",
    "DetectionResult",
    "detect_model_type",
    "WorkflowBuilderKey",
    "WorkflowRouter",
    "BuilderSelection",
    "select_builder",
    "InventoryCache",
    "ModelValidationManager",
    "ValidationResult",
    "ModelResolutionEngine",
    "ArchitectureFamily",
    "ModelVariant",
    "Precision",
    "ModelArchitecture",
    "DetectionMethod",
    "MatchMethod",
]
