"""
Quantization and Variant Detection

Pure functions that read a precision tag or a variant tag out of a model file
name with ordered substring rules. Rules are evaluated top to bottom and the
first match wins, so more specific markers are listed before generic ones.
"""

from typing import Any, Dict, List, Optional, Tuple

from .types import ModelVariant, Precision, Quantization

Q = Quantization


# =============================================================================
# Quantization
# =============================================================================

_QUANTIZATION_RULES: List[Tuple[Tuple[str, ...], Quantization]] = [
    (("fp8_e5m2", "fp8-e5m2"), Q.FP8_E5M2),
    (("fp8_e4m3fn", "fp8-e4m3fn"), Q.FP8_E4M3FN),
    (("q2_k",), Q.GGUF_Q2_K),
    (("q3_k_s",), Q.GGUF_Q3_K_S),
    (("q3_k_m",), Q.GGUF_Q3_K_M),
    (("q4_k_s",), Q.GGUF_Q4_K_S),
    (("q4_k_m",), Q.GGUF_Q4_K_M),
    (("q4_0",), Q.GGUF_Q4_0),
    (("q4_1",), Q.GGUF_Q4_1),
    (("q5_k_s",), Q.GGUF_Q5_K_S),
    (("q5_k_m",), Q.GGUF_Q5_K_M),
    (("q5_0",), Q.GGUF_Q5_0),
    (("q5_1",), Q.GGUF_Q5_1),
    (("q6_k",), Q.GGUF_Q6_K),
    (("q8_0",), Q.GGUF_Q8_0),
    (("bnb-nf4", "bnb_nf4"), Q.BNB_NF4),
    (("nf4",), Q.NF4),
    (("int4", "w4a4"), Q.INT4),
    (("int8",), Q.INT8),
    (("fp32",), Q.FP32),
    (("fp16",), Q.FP16),
    (("fp8",), Q.FP8),
]


def detect_quantization(file_name: str) -> Optional[Quantization]:
    """
    Detect the quantization tag of a model file name.

    Args:
        file_name: Model file name, any case.

    Returns:
        The first matching Quantization, or None for an unquantized name.
    """
    lower = file_name.lower()
    for markers, quantization in _QUANTIZATION_RULES:
        if any(marker in lower for marker in markers):
            return quantization
    # GGUF full-precision export ("flux1-dev-F16.gguf")
    if lower.endswith(".gguf") and "f16" in lower:
        return Q.GGUF_F16
    return None


# Approximate checkpoint size for a FLUX.1 12B transformer, by quantization.
# Informational only.
ESTIMATED_SIZE_GB: Dict[Optional[Quantization], float] = {
    None: 23.8,
    Q.FP32: 47.6,
    Q.FP16: 23.8,
    Q.GGUF_F16: 23.8,
    Q.FP8: 11.9,
    Q.FP8_E4M3FN: 11.9,
    Q.FP8_E5M2: 11.9,
    Q.INT8: 11.9,
    Q.GGUF_Q8_0: 12.7,
    Q.GGUF_Q6_K: 9.86,
    Q.GGUF_Q5_K_M: 8.43,
    Q.GGUF_Q5_K_S: 8.29,
    Q.GGUF_Q5_1: 9.01,
    Q.GGUF_Q5_0: 8.27,
    Q.GGUF_Q4_K_M: 6.93,
    Q.GGUF_Q4_K_S: 6.81,
    Q.GGUF_Q4_1: 7.53,
    Q.GGUF_Q4_0: 6.79,
    Q.GGUF_Q3_K_M: 5.38,
    Q.GGUF_Q3_K_S: 5.23,
    Q.GGUF_Q2_K: 4.03,
    Q.BNB_NF4: 6.0,
    Q.NF4: 6.0,
    Q.INT4: 6.5,
}


def estimate_size_gb(quantization: Optional[Quantization]) -> float:
    return ESTIMATED_SIZE_GB.get(quantization, ESTIMATED_SIZE_GB[None])


# =============================================================================
# Variant
# =============================================================================

_VARIANT_RULES: List[Tuple[str, ModelVariant]] = [
    ("schnell", ModelVariant.SCHNELL),
    ("kontext", ModelVariant.KONTEXT),
    ("krea", ModelVariant.KREA),
    ("lite", ModelVariant.LITE),
    ("mini", ModelVariant.MINI),
    ("fill", ModelVariant.FILL),
    ("redux", ModelVariant.REDUX),
    ("dev", ModelVariant.DEV),
]


def detect_variant(file_name: str) -> Optional[ModelVariant]:
    """Detect the FLUX variant named in a file name, or None."""
    lower = file_name.lower()
    for marker, variant in _VARIANT_RULES:
        if marker in lower:
            return variant
    return None


def is_flux_model(file_name: str) -> bool:
    return "flux" in file_name.lower()


# =============================================================================
# Weight dtype selection
# =============================================================================


def select_optimal_weight_dtype(model_name: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Pick the weight_dtype to pass to ComfyUI's UNETLoader for a model file.

    An explicit params["weight_dtype"] always wins. ComfyUI does not accept
    "auto", so the fallback is "default".

    Args:
        model_name: Model file name.
        params: Generation parameters, may carry "weight_dtype".

    Returns:
        A ComfyUI weight_dtype string.
    """
    if params and params.get("weight_dtype"):
        return params["weight_dtype"]

    lower = model_name.lower()

    if "fp8_e5m2" in lower or "fp8-e5m2" in lower:
        return Precision.FP8_E5M2.value
    if "fp8_e4m3fn" in lower or "fp8-e4m3fn" in lower:
        return Precision.FP8_E4M3FN.value
    if "fp32" in lower:
        return Precision.FP32.value
    if "fp16" in lower:
        return Precision.FP16.value

    if "int4" in lower:
        return Precision.INT4.value
    if "int8" in lower:
        return Precision.INT8.value
    if "nf4" in lower or "bnb" in lower:
        return Precision.NF4.value

    # Bare fp8 defaults to the faster e4m3fn layout
    if "fp8" in lower:
        return Precision.FP8_E4M3FN.value

    if lower.endswith(".gguf"):
        return Precision.DEFAULT.value

    if "schnell" in lower:
        return Precision.FP8_E4M3FN.value

    return Precision.DEFAULT.value
