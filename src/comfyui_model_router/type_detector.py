"""
Model Type Detection

Classifies a model identifier by architecture and variant from the string
alone. Independent of the registry, so community models that were never
enumerated can still be routed.

Tiers, first match wins:
    exact            known identifier                      confidence 1.0
    variant-keyword  family keyword + variant keyword      confidence 0.8
    generic-keyword  family keyword only                   confidence 0.7 / 0.6
    unknown          nothing matched                       confidence 0.0
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .naming import strip_identifier_extension, strip_routing_prefix
from .types import DetectionMethod, DetectionResultDict, ModelArchitecture, ModelVariant

logger = logging.getLogger("comfyui-model-router")

A = ModelArchitecture
V = ModelVariant


@dataclass(frozen=True)
class DetectionResult:
    """Architecture, variant and confidence for one identifier."""

    architecture: ModelArchitecture
    is_supported: bool = False
    variant: Optional[ModelVariant] = None
    confidence: float = 0.0
    method: DetectionMethod = DetectionMethod.UNKNOWN

    def to_dict(self) -> DetectionResultDict:
        result: DetectionResultDict = {
            "architecture": self.architecture.value,
            "confidence": self.confidence,
            "method": self.method.value,
            "is_supported": self.is_supported,
        }
        if self.variant is not None:
            result["variant"] = self.variant.value
        return result


UNKNOWN_RESULT = DetectionResult(A.UNKNOWN)


# =============================================================================
# Detection Tables
# =============================================================================

# Fully supported identifiers (lower-case, no prefix, no extension)
EXACT_MODELS: Dict[str, ModelArchitecture] = {
    "flux-dev": A.FLUX,
    "flux-schnell": A.FLUX,
    "flux-kontext-dev": A.FLUX,
    "flux-krea-dev": A.FLUX,
    "stable-diffusion-3.5": A.SD3,
}

# Family keywords; the first group marks a versioned release name
FAMILY_KEYWORDS: Dict[ModelArchitecture, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    A.FLUX: (("flux.1", "flux1", "black-forest-labs"), ("flux",)),
    A.SD3: (("sd3.5", "sd35", "stable-diffusion-3.5"), ("sd3", "stable-diffusion-3")),
}

# Variant keywords per family, checked in order. kontext and krea come before
# dev because their release names end in "-dev". Variant names match anywhere
# in the identifier; English synonyms only match a whole token, so
# "flux-breakfast" is not "fast".
VARIANT_KEYWORDS: Dict[ModelArchitecture, List[Tuple[ModelVariant, Tuple[str, ...], Tuple[str, ...]]]] = {
    A.FLUX: [
        (V.SCHNELL, ("schnell",), ("fast", "quick")),
        (V.KONTEXT, ("kontext",), ("context",)),
        (V.KREA, ("krea",), ("creative",)),
        (V.DEV, ("dev",), ("development",)),
    ],
    A.SD3: [
        (V.SD35, ("3.5", "35"), ("large", "medium")),
    ],
}

BASE_VARIANTS: Dict[ModelArchitecture, ModelVariant] = {
    A.FLUX: V.DEV,
    A.SD3: V.SD35,
}

VERSIONED_KEYWORD_CONFIDENCE = 0.7
BARE_KEYWORD_CONFIDENCE = 0.6

_TOKEN_SEPARATORS = re.compile(r"[-_.\s/]+")


def _clean(model_id: str) -> str:
    return strip_identifier_extension(strip_routing_prefix(model_id.strip()).lower())


def _variant_from_keywords(architecture: ModelArchitecture, model_id: str) -> Optional[ModelVariant]:
    tokens = set(_TOKEN_SEPARATORS.split(model_id))
    for variant, names, synonyms in VARIANT_KEYWORDS[architecture]:
        if any(name in model_id for name in names) or tokens.intersection(synonyms):
            return variant
    return None


def _family_match(model_id: str) -> Optional[Tuple[ModelArchitecture, float]]:
    for architecture, (versioned, bare) in FAMILY_KEYWORDS.items():
        if any(keyword in model_id for keyword in versioned):
            return architecture, VERSIONED_KEYWORD_CONFIDENCE
        if any(keyword in model_id for keyword in bare):
            return architecture, BARE_KEYWORD_CONFIDENCE
    return None


# =============================================================================
# Detection
# =============================================================================


def detect_model_type(model_id: str) -> DetectionResult:
    """
    Classify a model identifier. Never raises.

    Args:
        model_id: Identifier, optionally with routing prefix and file extension.

    Returns:
        DetectionResult; UNKNOWN_RESULT when no tier matches.
    """
    cleaned = _clean(model_id)

    architecture = EXACT_MODELS.get(cleaned)
    if architecture is not None:
        variant = _variant_from_keywords(architecture, cleaned) or BASE_VARIANTS[architecture]
        return DetectionResult(architecture, True, variant, 1.0, DetectionMethod.EXACT)

    family = _family_match(cleaned)
    if family is None:
        logger.debug("No architecture detected for %s", model_id)
        return UNKNOWN_RESULT

    architecture, generic_confidence = family
    variant = _variant_from_keywords(architecture, cleaned)
    if variant is not None:
        return DetectionResult(architecture, True, variant, 0.8, DetectionMethod.VARIANT_KEYWORD)

    return DetectionResult(
        architecture,
        True,
        BASE_VARIANTS[architecture],
        generic_confidence,
        DetectionMethod.GENERIC_KEYWORD,
    )


def is_flux_model_id(model_id: str) -> bool:
    return detect_model_type(model_id).architecture == A.FLUX


def validate_architecture_compatibility(architecture: ModelArchitecture) -> bool:
    return architecture in BASE_VARIANTS


def get_supported_architectures() -> List[ModelArchitecture]:
    return list(BASE_VARIANTS)


def get_supported_variants(architecture: ModelArchitecture = A.FLUX) -> List[ModelVariant]:
    return [variant for variant, _, _ in VARIANT_KEYWORDS.get(architecture, [])]


def get_detection_stats(model_ids: Iterable[str]) -> Dict[str, int]:
    """Counts of detection outcomes over a batch of identifiers, for monitoring."""
    results = [detect_model_type(model_id) for model_id in model_ids]
    stats = {
        "total_models": len(results),
        "supported_models": sum(1 for r in results if r.is_supported),
        "unsupported_models": sum(1 for r in results if not r.is_supported),
    }
    for architecture in A:
        stats[f"{architecture.value}_models"] = sum(1 for r in results if r.architecture == architecture)
    for method in DetectionMethod:
        key = method.value.replace("-", "_")
        stats[f"{key}_matches"] = sum(1 for r in results if r.method == method)
    return stats
