"""
Model Resolution Engine

Wires the two independent paths together:

    model_id -> validation manager -> actual file name
    model_id -> type detector      -> architecture / variant
                both -> router     -> workflow
"""

from typing import Any, Dict, Optional

from core.errors import ConfigError, RichMCPError, RoutingError

from .router import WorkflowRouter, exact_model_file, select_builder
from .type_detector import detect_model_type
from .types import ExplainResultDict
from .validation import ModelValidationManager


def _validation_id(model_id: str) -> str:
    # Exact routing ids ("flux-schnell") validate as their registry file
    return exact_model_file(model_id) or model_id


class ModelResolutionEngine:
    """Validation, detection and routing for one model identifier."""

    def __init__(
        self,
        validation_manager: Optional[ModelValidationManager] = None,
        router: Optional[WorkflowRouter] = None,
    ):
        self.validation_manager = validation_manager or ModelValidationManager()
        self.router = router

    def explain(self, model_id: str) -> ExplainResultDict:
        """
        Report how a model would be resolved, without building anything.

        Validation and routing failures are collected under "errors" instead
        of raised, so one call shows every problem.
        """
        detection = detect_model_type(model_id)
        result: ExplainResultDict = {
            "model_id": model_id,
            "detection": detection.to_dict(),
            "builder": None,
            "matched_by": None,
            "errors": [],
        }

        try:
            result["validation"] = self.validation_manager.validate_model_existence(_validation_id(model_id)).to_dict()
        except RichMCPError as e:
            result["errors"].append(e.to_dict())

        try:
            selection = select_builder(model_id, detection)
        except RoutingError as e:
            result["errors"].append(e.to_dict())
        else:
            result["builder"] = selection.key.value
            result["matched_by"] = selection.matched_by.value

        return result

    def build_workflow(self, model_id: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Validate, detect and route a model to its workflow builder.

        Raises:
            ModelNotFoundError: The model is unknown or not on the server.
            TransportError: The server inventory could not be fetched.
            RoutingError: No builder applies or the builder failed.
            ConfigError: The engine was created without a router.
        """
        if self.router is None:
            raise ConfigError(
                message="No workflow router configured; pass router= with a builder table",
                reason=ConfigError.MISSING_CONFIG,
            )
        validation = self.validation_manager.validate_model_existence(_validation_id(model_id))
        detection = detect_model_type(model_id)
        return self.router.route_workflow(model_id, detection, validation.actual_file_name, params)
