"""
Workflow Router

Selects the workflow builder for a detected model and invokes it.

Builders are external: the router receives one callable per
WorkflowBuilderKey at construction and refuses an incomplete table. Selection
order:
    1. exact identifier table (always wins over the detected variant)
    2. variant table
    3. RoutingError naming architecture and variant

Usage:
    router = WorkflowRouter({
        WorkflowBuilderKey.FLUX_DEV: build_flux_dev,
        WorkflowBuilderKey.FLUX_SCHNELL: build_flux_schnell,
        ...
    })
    workflow = router.route_workflow("flux-schnell", detection, "flux1-schnell.safetensors", {})
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.errors import ConfigError, RoutingError, has_error_kind

from .mcp_utils import log_structured
from .naming import strip_routing_prefix
from .type_detector import DetectionResult
from .types import ModelVariant

# (actual_file_name, params) -> opaque workflow artifact
WorkflowBuilder = Callable[[str, Dict[str, Any]], Any]


class WorkflowBuilderKey(Enum):
    """Closed set of workflow builders the router dispatches to."""

    FLUX_DEV = "flux-dev"
    FLUX_SCHNELL = "flux-schnell"
    FLUX_KONTEXT = "flux-kontext"
    FLUX_KREA = "flux-krea"
    SD35 = "sd35"


class MatchedBy(Enum):
    EXACT = "exact"
    VARIANT = "variant"


# =============================================================================
# Routing Tables
# =============================================================================

EXACT_MODEL_BUILDERS: Dict[str, WorkflowBuilderKey] = {
    "flux-dev": WorkflowBuilderKey.FLUX_DEV,
    "flux-schnell": WorkflowBuilderKey.FLUX_SCHNELL,
    "flux-kontext-dev": WorkflowBuilderKey.FLUX_KONTEXT,
    "flux-krea-dev": WorkflowBuilderKey.FLUX_KREA,
    "stable-diffusion-3.5": WorkflowBuilderKey.SD35,
}

# Registry file validated on the server for each exact identifier
EXACT_MODEL_FILES: Dict[str, str] = {
    "flux-dev": "flux1-dev.safetensors",
    "flux-schnell": "flux1-schnell.safetensors",
    "flux-kontext-dev": "flux1-kontext-dev.safetensors",
    "flux-krea-dev": "flux1-krea-dev.safetensors",
    "stable-diffusion-3.5": "sd3.5_large.safetensors",
}

VARIANT_BUILDERS: Dict[ModelVariant, WorkflowBuilderKey] = {
    ModelVariant.DEV: WorkflowBuilderKey.FLUX_DEV,
    ModelVariant.SCHNELL: WorkflowBuilderKey.FLUX_SCHNELL,
    ModelVariant.KONTEXT: WorkflowBuilderKey.FLUX_KONTEXT,
    ModelVariant.KREA: WorkflowBuilderKey.FLUX_KREA,
    ModelVariant.SD35: WorkflowBuilderKey.SD35,
}


@dataclass(frozen=True)
class BuilderSelection:
    key: WorkflowBuilderKey
    matched_by: MatchedBy

    def to_dict(self) -> Dict[str, str]:
        return {"builder": self.key.value, "matched_by": self.matched_by.value}


def _routing_error(model_id: str, reason: str, detection: Optional[DetectionResult]) -> RoutingError:
    architecture = detection.architecture.value if detection is not None else None
    variant = detection.variant.value if detection is not None and detection.variant is not None else None
    return RoutingError(model_id=model_id, reason=reason, architecture=architecture, variant=variant)


def select_builder(model_id: str, detection: Optional[DetectionResult]) -> BuilderSelection:
    """
    Pick a builder key without invoking it.

    Preconditions are checked before either table is consulted.

    Raises:
        RoutingError: Empty model id, missing or unsupported detection, or no
            table entry.
    """
    if not model_id or detection is None:
        raise _routing_error(model_id, "model_id and detection result are required", detection)
    if not detection.is_supported:
        raise _routing_error(
            model_id,
            f"Unsupported model architecture: {detection.architecture.value}",
            detection,
        )

    exact = EXACT_MODEL_BUILDERS.get(strip_routing_prefix(model_id))
    if exact is not None:
        return BuilderSelection(exact, MatchedBy.EXACT)

    if detection.variant is not None and detection.variant in VARIANT_BUILDERS:
        return BuilderSelection(VARIANT_BUILDERS[detection.variant], MatchedBy.VARIANT)

    variant = detection.variant.value if detection.variant is not None else "unknown"
    raise _routing_error(
        model_id,
        f"No workflow builder found (architecture: {detection.architecture.value}, variant: {variant})",
        detection,
    )


def has_exact_support(model_id: str) -> bool:
    return strip_routing_prefix(model_id) in EXACT_MODEL_BUILDERS


def exact_model_file(model_id: str) -> Optional[str]:
    """Registry file behind an exact routing identifier, or None."""
    return EXACT_MODEL_FILES.get(strip_routing_prefix(model_id))


def has_variant_support(variant: ModelVariant) -> bool:
    return variant in VARIANT_BUILDERS


def get_exactly_supported_models() -> List[str]:
    return list(EXACT_MODEL_BUILDERS)


def get_supported_builder_variants() -> List[ModelVariant]:
    return list(VARIANT_BUILDERS)


def get_routing_stats() -> Dict[str, int]:
    return {
        "exact_models_count": len(EXACT_MODEL_BUILDERS),
        "supported_variants_count": len(VARIANT_BUILDERS),
        "total_builders": len(set(EXACT_MODEL_BUILDERS.values()) | set(VARIANT_BUILDERS.values())),
    }


# =============================================================================
# Router
# =============================================================================


class WorkflowRouter:
    """Dispatches to injected workflow builders through the fixed tables."""

    def __init__(self, builders: Mapping[WorkflowBuilderKey, WorkflowBuilder]):
        missing = [key.value for key in WorkflowBuilderKey if key not in builders]
        if missing:
            raise ConfigError(
                message="Workflow builder table is incomplete",
                reason=ConfigError.MISSING_CONFIG,
                entries=missing,
            )
        not_callable = [key.value for key, builder in builders.items() if not callable(builder)]
        if not_callable:
            raise ConfigError(
                message="Workflow builders must be callable",
                reason=ConfigError.INVALID_CONFIG,
                entries=not_callable,
            )
        self._builders: Dict[WorkflowBuilderKey, WorkflowBuilder] = dict(builders)

    def select_builder(self, model_id: str, detection: Optional[DetectionResult]) -> BuilderSelection:
        return select_builder(model_id, detection)

    def route_workflow(
        self,
        model_id: str,
        detection: Optional[DetectionResult],
        actual_file_name: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Build the workflow for a model.

        Args:
            model_id: Identifier the caller asked for.
            detection: Result of detect_model_type().
            actual_file_name: Server file name from validation.
            params: Generation parameters, forwarded unchanged.

        Returns:
            Whatever the builder returns, unmodified.

        Raises:
            RoutingError: No builder applies, or the builder failed (the
                original exception is chained).
        """
        params = {} if params is None else params
        try:
            selection = select_builder(model_id, detection)
        except RoutingError as e:
            log_structured("warning", "workflow_routing_failed", model_id=model_id, reason=e.reason)
            raise

        builder = self._builders[selection.key]
        try:
            workflow = builder(actual_file_name, params)
        except Exception as e:
            log_structured(
                "error",
                "workflow_routing_failed",
                model_id=model_id,
                builder=selection.key.value,
                reason=str(e),
                error_type=type(e).__name__,
            )
            if has_error_kind(e):
                raise
            raise _routing_error(model_id, str(e), detection) from e

        log_structured(
            "info",
            "workflow_routed",
            model_id=model_id,
            builder=selection.key.value,
            matched_by=selection.matched_by.value,
            actual_file_name=actual_file_name,
        )
        return workflow
