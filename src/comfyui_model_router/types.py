"""
Type Definitions for the ComfyUI Model Router

Enums shared by the registry, standardizer, detector and router, plus TypedDict
shapes for the dicts returned by the MCP tools and the CLI.

Usage:
    from comfyui_model_router.types import ModelVariant, ValidationResultDict

    def my_tool() -> ValidationResultDict:
        return {"exists": True, "actual_file_name": "flux1-dev.safetensors", ...}
"""

from enum import Enum
from typing import TypedDict, List, Dict, Any, Optional
from typing_extensions import Required, NotRequired


# =============================================================================
# Registry Vocabulary
# =============================================================================


class ArchitectureFamily(Enum):
    """Model architecture family of a registry entry."""

    FLUX = "FLUX"
    SD1 = "SD1"
    SDXL = "SDXL"
    SD3 = "SD3"


class ModelVariant(Enum):
    """Named sub-configuration of an architecture family."""

    DEV = "dev"
    SCHNELL = "schnell"
    KONTEXT = "kontext"
    KREA = "krea"
    FILL = "fill"
    REDUX = "redux"
    LITE = "lite"
    MINI = "mini"
    SD35 = "sd35"


class Precision(Enum):
    """Recommended numeric precision (ComfyUI weight_dtype values)."""

    DEFAULT = "default"
    FP16 = "fp16"
    FP32 = "fp32"
    FP8_E4M3FN = "fp8_e4m3fn"
    FP8_E5M2 = "fp8_e5m2"
    NF4 = "nf4"
    GGUF = "gguf"
    INT4 = "int4"
    INT8 = "int8"


class Quantization(Enum):
    """Quantization tag detected from a file name."""

    FP32 = "fp32"
    FP16 = "fp16"
    FP8 = "fp8"
    FP8_E4M3FN = "fp8_e4m3fn"
    FP8_E5M2 = "fp8_e5m2"
    BNB_NF4 = "bnb_nf4"
    NF4 = "nf4"
    INT4 = "int4"
    INT8 = "int8"
    GGUF_F16 = "gguf_f16"
    GGUF_Q8_0 = "gguf_q8_0"
    GGUF_Q6_K = "gguf_q6_k"
    GGUF_Q5_K_M = "gguf_q5_k_m"
    GGUF_Q5_K_S = "gguf_q5_k_s"
    GGUF_Q5_1 = "gguf_q5_1"
    GGUF_Q5_0 = "gguf_q5_0"
    GGUF_Q4_K_M = "gguf_q4_k_m"
    GGUF_Q4_K_S = "gguf_q4_k_s"
    GGUF_Q4_1 = "gguf_q4_1"
    GGUF_Q4_0 = "gguf_q4_0"
    GGUF_Q3_K_M = "gguf_q3_k_m"
    GGUF_Q3_K_S = "gguf_q3_k_s"
    GGUF_Q2_K = "gguf_q2_k"


class MatchMethod(Enum):
    """Standardizer step that produced a match."""

    EXACT = "exact"
    CASE_INSENSITIVE = "case_insensitive"
    ALIAS = "alias"
    FUZZY = "fuzzy"
    PATTERN = "pattern"


# =============================================================================
# Detection Vocabulary
# =============================================================================


class ModelArchitecture(Enum):
    """Architecture reported by the type detector."""

    FLUX = "flux"
    SD3 = "sd3"
    UNKNOWN = "unknown"


class DetectionMethod(Enum):
    """Detector tier that classified an identifier."""

    EXACT = "exact"
    VARIANT_KEYWORD = "variant-keyword"
    GENERIC_KEYWORD = "generic-keyword"
    UNKNOWN = "unknown"


# =============================================================================
# Response Shapes
# =============================================================================


class RegistryEntryDict(TypedDict):
    """Serialized registry entry."""

    priority: int
    architecture_family: str
    variant: str
    recommended_precision: str


class StandardizedModelDict(TypedDict):
    """Serialized standardization result."""

    standard_name: Required[str]
    variant: Required[str]
    architecture_family: Required[str]
    precision_hint: Required[str]
    priority: Required[int]
    sub_priority: Required[int]
    estimated_size_gb: Required[float]
    source: Required[str]
    quantization_tag: Optional[str]
    method: NotRequired[str]
    similarity: NotRequired[float]


class ValidationResultDict(TypedDict):
    """Serialized validation result."""

    exists: Required[bool]
    validated_at_ms: Required[int]
    actual_file_name: NotRequired[str]
    standard_name: NotRequired[str]
    priority: NotRequired[int]
    variant: NotRequired[str]


class DetectionResultDict(TypedDict):
    """Serialized detection result."""

    architecture: str
    confidence: float
    method: str
    is_supported: bool
    variant: NotRequired[str]


class CacheStatsDict(TypedDict):
    """Inventory cache statistics."""

    cached: bool
    cache_age_ms: int
    ttl_ms: int
    entry_count: int
    fetch_count: int


class ExplainResultDict(TypedDict, total=False):
    """Combined validation, detection and builder selection."""

    model_id: Required[str]
    validation: ValidationResultDict
    detection: Required[DetectionResultDict]
    builder: Optional[str]
    matched_by: Optional[str]
    errors: List[Dict[str, Any]]
