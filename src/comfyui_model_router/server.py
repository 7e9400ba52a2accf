"""ComfyUI Model Router MCP Server - Main entry point."""

import json
from typing import Optional

from mcp.server.fastmcp import FastMCP

from . import model_registry
from . import resolver
from . import router
from . import standardizer
from . import type_detector
from .engine import ModelResolutionEngine
from .mcp_utils import mcp_error, mcp_success, mcp_tool_wrapper
from .types import ModelVariant
from .validation import ModelValidationManager

# Initialize MCP server
mcp = FastMCP(
    "comfyui-model-router",
    instructions="Resolve model identifiers to ComfyUI server files and select workflow builders",
)

_validation_manager: Optional[ModelValidationManager] = None


def get_validation_manager() -> ModelValidationManager:
    """Get or create the process-wide validation manager."""
    global _validation_manager
    if _validation_manager is None:
        _validation_manager = ModelValidationManager()
    return _validation_manager


def set_validation_manager(manager: Optional[ModelValidationManager]) -> None:
    global _validation_manager
    _validation_manager = manager


# =============================================================================
# Resolution Tools (3)
# =============================================================================


@mcp.tool()
@mcp_tool_wrapper
def resolve_model(name: str) -> dict:
    """Look up a model in the registry (exact or case-insensitive file name)."""
    key = resolver.resolve_model_key(name)
    if key is None:
        return {"found": False, "name": name}
    return {"found": True, "name": name, "model": key, **model_registry.MODEL_REGISTRY[key].to_dict()}


@mcp.tool()
@mcp_tool_wrapper
def standardize_model_name(name: str, allow_fuzzy: bool = False) -> dict:
    """Canonicalize a model file name. allow_fuzzy enables alias, similarity and pattern matching."""
    return standardizer.standardize(name, allow_fuzzy=allow_fuzzy).to_dict()


@mcp.tool()
@mcp_tool_wrapper
def validate_model(model_id: str) -> dict:
    """Check that a model exists on the ComfyUI server and return its actual file name."""
    return get_validation_manager().validate_model_existence(model_id).to_dict()


# =============================================================================
# Detection and Routing Tools (3)
# =============================================================================


@mcp.tool()
@mcp_tool_wrapper
def detect_model_type(model_id: str) -> dict:
    """Classify a model identifier by architecture, variant and confidence."""
    return type_detector.detect_model_type(model_id).to_dict()


@mcp.tool()
@mcp_tool_wrapper
def select_workflow_builder(model_id: str) -> dict:
    """Show which workflow builder a model routes to, and whether by exact id or variant."""
    detection = type_detector.detect_model_type(model_id)
    selection = router.select_builder(model_id, detection)
    return {"model_id": model_id, "detection": detection.to_dict(), **selection.to_dict()}


@mcp.tool()
@mcp_tool_wrapper
def explain_model(model_id: str) -> dict:
    """Validation, detection and builder selection for a model in one report."""
    return ModelResolutionEngine(get_validation_manager()).explain(model_id)


# =============================================================================
# Registry and Inventory Tools (4)
# =============================================================================


@mcp.tool()
@mcp_tool_wrapper
def list_registry_models(variant: str = "", priority: int = 0) -> dict:
    """List registry models, optionally by variant (dev, schnell, ...) or priority tier (1-3)."""
    if variant:
        try:
            wanted = ModelVariant(variant.lower())
        except ValueError:
            valid = ", ".join(v.value for v in ModelVariant)
            return mcp_error(f"Unknown variant: {variant}. Use: {valid}", "VALIDATION_ERROR")
        names = model_registry.get_models_by_variant(wanted)
    else:
        names = model_registry.get_all_model_names()

    if priority:
        if priority not in model_registry.PRIORITY_CATEGORIES:
            return mcp_error(f"Unknown priority: {priority}. Use 1, 2 or 3", "VALIDATION_ERROR")
        names = [name for name in names if model_registry.MODEL_REGISTRY[name].priority == priority]

    return mcp_success({"models": names, "count": len(names)})


@mcp.tool()
@mcp_tool_wrapper
def get_server_inventory() -> dict:
    """Model files the ComfyUI server reports (cached for up to one minute)."""
    files = get_validation_manager().get_server_inventory()
    return {"files": files, "count": len(files)}


@mcp.tool()
@mcp_tool_wrapper
def get_inventory_cache_stats() -> dict:
    """Inventory cache age, TTL and fetch count."""
    return get_validation_manager().get_cache_stats()


@mcp.tool()
@mcp_tool_wrapper
def clear_inventory_cache() -> dict:
    """Force the next validation to refetch the server inventory."""
    get_validation_manager().clear_cache()
    return mcp_success({"cleared": True}, message="Inventory cache cleared")


# =============================================================================
# Resources
# =============================================================================


@mcp.resource(
    "comfyui://models/registry",
    name="Model Registry",
    description="Registry statistics by priority tier, variant and family",
    mime_type="application/json",
)
def resource_registry_stats() -> str:
    return json.dumps(model_registry.get_registry_stats(), indent=2)


@mcp.resource(
    "comfyui://workflows/routing",
    name="Workflow Routing",
    description="Exact identifiers and variants the router can dispatch",
    mime_type="application/json",
)
def resource_routing_tables() -> str:
    result = {
        "exact_models": router.get_exactly_supported_models(),
        "variants": [variant.value for variant in router.get_supported_builder_variants()],
        **router.get_routing_stats(),
    }
    return json.dumps(result, indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
