"""
Model Name Standardizer

Turns any model file name into a canonical StandardizedModel record. One
pipeline serves both strict and fuzzy callers; steps run in this order and
the first hit wins:

    1. directory components stripped, trailing file name kept
    2. exact registry key
    3. case-insensitive registry key
    4. alias table                       (allow_fuzzy only)
    5. Levenshtein similarity >= 0.8     (allow_fuzzy only, same quantization and variant)
    6. ordered pattern rules             (allow_fuzzy only)

Strict mode never guesses: a name that is not a registry key (ignoring case)
raises ModelNotFoundError.

Usage:
    from .standardizer import standardize

    model = standardize("FLUX1-DEV.SAFETENSORS")
    model.standard_name   # "flux1-dev.safetensors"

    standardize("flux-dev.safetensors", allow_fuzzy=True).method   # MatchMethod.ALIAS
"""

import functools
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.errors import ModelNotFoundError

from .model_registry import (
    FLUX_BASE_STEMS,
    MODEL_ALIASES,
    MODEL_REGISTRY,
    PRIORITY_CATEGORIES,
    find_registry_key,
    get_tier_position,
)
from .naming import base_file_name, lookup_candidates
from .quantization import detect_quantization, detect_variant, estimate_size_gb, select_optimal_weight_dtype
from .types import ArchitectureFamily, MatchMethod, ModelVariant, Precision, Quantization, StandardizedModelDict

logger = logging.getLogger("comfyui-model-router")

FUZZY_THRESHOLD = 0.8


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True)
class StandardizedModel:
    """
    Canonical identity of a model file.

    method and similarity describe how the match was found and are left out
    of equality: the same weights compare equal however they were reached.
    """

    standard_name: str
    variant: ModelVariant
    architecture_family: ArchitectureFamily
    precision_hint: Precision
    priority: int
    sub_priority: int
    estimated_size_gb: float
    source: str
    quantization_tag: Optional[str] = None
    method: MatchMethod = field(default=MatchMethod.EXACT, compare=False)
    similarity: float = field(default=1.0, compare=False)

    def to_dict(self) -> StandardizedModelDict:
        return {
            "standard_name": self.standard_name,
            "variant": self.variant.value,
            "architecture_family": self.architecture_family.value,
            "precision_hint": self.precision_hint.value,
            "priority": self.priority,
            "sub_priority": self.sub_priority,
            "estimated_size_gb": self.estimated_size_gb,
            "source": self.source,
            "quantization_tag": self.quantization_tag,
            "method": self.method.value,
            "similarity": round(self.similarity, 3),
        }


# =============================================================================
# Derived Fields
# =============================================================================

# Filename keyword -> publisher; first match wins
_SOURCE_KEYWORDS: List[Tuple[str, str]] = [
    ("svdquant", "mit-han-lab"),
    ("torchao", "pytorch-torchao"),
    ("quanto", "huggingface-quanto"),
    ("mflux", "mflux"),
    ("bnb", "lllyasviel"),
    ("nf4", "lllyasviel"),
    ("lite-8b", "Freepik"),
    ("flux-mini", "TencentARC"),
    ("flux_mini", "TencentARC"),
    ("shakker", "Shakker-Labs"),
    ("jib", "CivitAI-JibMix"),
    ("real_dream", "CivitAI-RealDream"),
    ("realdream", "CivitAI-RealDream"),
    ("vision_realistic", "CivitAI-VisionRealistic"),
    ("pixelwave", "CivitAI-PixelWave"),
    ("fuxcapacity", "CivitAI-FuxCapacity"),
    ("fux_capacity", "CivitAI-FuxCapacity"),
    ("fluxmania", "CivitAI-Fluxmania"),
    ("ultrareal", "CivitAI-UltraReal"),
    (".gguf", "city96"),
]


def _derive_source(name: str, priority: int, family: ArchitectureFamily) -> str:
    lower = name.lower()
    for keyword, source in _SOURCE_KEYWORDS:
        if keyword in lower:
            return source
    if priority == 1:
        return "stabilityai" if family == ArchitectureFamily.SD3 else "black-forest-labs"
    return PRIORITY_CATEGORIES[priority]


_PRECISION_BY_QUANTIZATION: Dict[Quantization, Precision] = {
    Quantization.FP32: Precision.FP32,
    Quantization.FP16: Precision.FP16,
    Quantization.FP8: Precision.FP8_E4M3FN,
    Quantization.FP8_E4M3FN: Precision.FP8_E4M3FN,
    Quantization.FP8_E5M2: Precision.FP8_E5M2,
    Quantization.BNB_NF4: Precision.NF4,
    Quantization.NF4: Precision.NF4,
    Quantization.INT4: Precision.INT4,
    Quantization.INT8: Precision.INT8,
}


def _precision_from_name(name: str) -> Precision:
    quantization = detect_quantization(name)
    if quantization is None:
        return Precision.DEFAULT
    if quantization.value.startswith("gguf_"):
        return Precision.GGUF
    return _PRECISION_BY_QUANTIZATION[quantization]


def _quantization_tag(name: str, precision: Precision) -> Optional[str]:
    quantization = detect_quantization(name)
    if quantization is not None:
        return quantization.value
    if precision != Precision.DEFAULT:
        return precision.value
    return None


def _from_registry(key: str, method: MatchMethod, similarity: float = 1.0) -> StandardizedModel:
    entry = MODEL_REGISTRY[key]
    return StandardizedModel(
        standard_name=key,
        variant=entry.variant,
        architecture_family=entry.architecture_family,
        precision_hint=entry.recommended_precision,
        priority=entry.priority,
        sub_priority=get_tier_position(key),
        estimated_size_gb=estimate_size_gb(detect_quantization(key)),
        source=_derive_source(key, entry.priority, entry.architecture_family),
        quantization_tag=_quantization_tag(key, entry.recommended_precision),
        method=method,
        similarity=similarity,
    )


# =============================================================================
# Fuzzy Matching
# =============================================================================


def levenshtein_distance(a: str, b: str, limit: Optional[int] = None) -> int:
    """
    Edit distance between two strings (insert, delete, substitute all cost 1).

    With a limit, gives up as soon as the distance must exceed it and returns
    limit + 1.
    """
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        if limit is not None and min(current) > limit:
            return limit + 1
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity 1 - distance / max(len), compared case-insensitively."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a.lower(), b.lower()) / longest


def _same_weights(candidate: str, key: str) -> bool:
    """Whether a fuzzy hit keeps the quantization and named variant of the input."""
    if detect_quantization(candidate) != detect_quantization(key):
        return False
    variant = detect_variant(candidate)
    return variant is None or variant == detect_variant(key)


def _best_fuzzy_match(candidates: List[str]) -> Optional[Tuple[str, float]]:
    best_key = None
    best_score = 0.0
    for key in MODEL_REGISTRY:
        for candidate in candidates:
            longest = max(len(candidate), len(key))
            # Length gap alone bounds the score from above
            if longest == 0 or 1.0 - abs(len(candidate) - len(key)) / longest < FUZZY_THRESHOLD:
                continue
            if not _same_weights(candidate, key):
                continue
            # One edit of slack over the threshold budget; anything past it scores below
            limit = int(longest * (1.0 - FUZZY_THRESHOLD)) + 1
            score = 1.0 - levenshtein_distance(candidate.lower(), key.lower(), limit) / longest
            # Strict '>' keeps the first key in registry order on ties
            if score > best_score:
                best_key, best_score = key, score
    if best_key is None or best_score < FUZZY_THRESHOLD:
        return None
    return best_key, best_score


# =============================================================================
# Pattern Rules
# =============================================================================


@dataclass(frozen=True)
class PatternMatch:
    """What a pattern rule recognized: canonical name plus trust tier and family."""

    standard_name: str
    priority: int
    architecture_family: ArchitectureFamily = ArchitectureFamily.FLUX


@dataclass(frozen=True)
class PatternRule:
    """One (predicate, factory) pair of the ordered pattern table."""

    name: str
    predicate: Callable[[str], Optional["re.Match[str]"]]
    factory: Callable[["re.Match[str]"], PatternMatch]


_OFFICIAL_BASE = re.compile(r"^flux(?:[._-]?1)?[._-](dev|schnell|kontext[-_]dev|krea[-_]dev)$", re.IGNORECASE)


def _flux_stem(base: str) -> Tuple[str, bool]:
    """Canonical stem for a FLUX base name, and whether it is an official base."""
    base = base.strip("-_. ").lower()
    match = _OFFICIAL_BASE.match(base)
    if match:
        variant = detect_variant(match.group(1))
        return FLUX_BASE_STEMS[variant], True
    return base, False


def _stem_tier(base: str) -> Tuple[str, int]:
    stem, official = _flux_stem(base)
    return stem, 2 if official else 3


def _official_release(m: "re.Match[str]") -> PatternMatch:
    variant = m.group(1).lower().replace("_", "-")
    return PatternMatch(f"flux1-{variant}.safetensors", 1)


def _gguf_level(m: "re.Match[str]") -> PatternMatch:
    stem, priority = _stem_tier(m.group("base"))
    return PatternMatch(f"{stem}-{m.group('level').upper()}.gguf", priority)


def _gguf_f16(m: "re.Match[str]") -> PatternMatch:
    stem, priority = _stem_tier(m.group("base"))
    return PatternMatch(f"{stem}-F16.gguf", priority)


def _fp8(m: "re.Match[str]") -> PatternMatch:
    stem, priority = _stem_tier(m.group("base"))
    fmt = (m.group("fmt") or "e4m3fn").lower()
    return PatternMatch(f"{stem}-fp8-{fmt}.safetensors", priority)


def _nf4(m: "re.Match[str]") -> PatternMatch:
    stem, priority = _stem_tier(m.group("base"))
    suffix = "-v2" if m.group("v2") else ""
    return PatternMatch(f"{stem}-bnb-nf4{suffix}.safetensors", priority)


def _advanced_quantization(m: "re.Match[str]") -> PatternMatch:
    stem, priority = _stem_tier(m.group("base"))
    method = m.group("method").lower().replace("_", "-")
    return PatternMatch(f"{stem}-{method}.safetensors", priority)


def _lite(m: "re.Match[str]") -> PatternMatch:
    suffix = "-alpha" if m.group("alpha") else ""
    return PatternMatch(f"flux.1-lite-8B{suffix}.safetensors", 2)


def _mini(m: "re.Match[str]") -> PatternMatch:
    if m.group("size"):
        return PatternMatch("FLUX_Mini_3_2B.safetensors", 2)
    return PatternMatch("flux-mini.safetensors", 2)


def _as_is(priority: int, family: ArchitectureFamily = ArchitectureFamily.FLUX) -> Callable[["re.Match[str]"], PatternMatch]:
    def factory(m: "re.Match[str]") -> PatternMatch:
        return PatternMatch(m.string.lower(), priority, family)

    return factory


def _sd35(m: "re.Match[str]") -> PatternMatch:
    turbo = "_turbo" if m.group("turbo") else ""
    size = m.group("size").lower()
    priority = 3 if size == "medium" else 2 if turbo else 1
    return PatternMatch(f"sd3.5_{size}{turbo}.safetensors", priority, ArchitectureFamily.SD3)


def _rule(name: str, pattern: str, factory: Callable[["re.Match[str]"], PatternMatch]) -> PatternRule:
    return PatternRule(name, re.compile(pattern, re.IGNORECASE).search, factory)


# Ordered: first match wins. Specific quantization suffixes come before the
# community and generic catch-alls; append new rules above "generic_flux".
PATTERN_RULES: List[PatternRule] = [
    _rule(
        "official_release",
        r"^flux(?:[._-]?1)?[._-](dev|schnell|kontext[-_]dev|krea[-_]dev|fill[-_]dev|redux[-_]dev)\.safetensors$",
        _official_release,
    ),
    _rule(
        "gguf_quantized",
        r"^(?P<base>.*flux.*?)[-_.]?(?P<level>q[2-8](?:_k(?:_[sm])?|_[01])?)\.gguf$",
        _gguf_level,
    ),
    _rule("gguf_f16", r"^(?P<base>.*flux.*?)[-_.]?f16\.gguf$", _gguf_f16),
    _rule(
        "fp8",
        r"^(?P<base>.*flux.*?)[-_.]?fp8(?:[-_](?P<fmt>e4m3fn|e5m2))?\.safetensors$",
        _fp8,
    ),
    _rule(
        "nf4",
        r"^(?P<base>.*flux.*?)[-_.]?(?:bnb[-_])?nf4(?P<v2>[-_]v2)?\.safetensors$",
        _nf4,
    ),
    _rule(
        "advanced_quantization",
        r"^(?P<base>.*flux.*?)[-_.](?P<method>svdquant[-_]w4a4|torchao[-_]int[48]|quanto[-_]qfloat8|mflux[-_]q4)\.safetensors$",
        _advanced_quantization,
    ),
    _rule("lite_8b", r"^flux[._-]?1?[._-]lite[._-]8b(?P<alpha>[._-]alpha)?\.safetensors$", _lite),
    _rule("flux_mini", r"^flux[-_]mini(?P<size>[-_]3[-_.]2b)?\.safetensors$", _mini),
    _rule("platform_prefixed", r"^(?:hf[-_]mirror|alibaba|comfyui)[-_].*flux.*\.(?:safetensors|gguf)$", _as_is(2)),
    _rule(
        "community_photoreal",
        r"(?:real[-_]?dream|vision[-_]?realistic|pixelwave|ultra[-_]?real|acorn).*\.(?:safetensors|gguf)$",
        _as_is(3),
    ),
    _rule(
        "community_merges",
        r"(?:jib[-_]?mix|flux[-_]unchained|creart[-_]hyper|fluxmania).*\.(?:safetensors|gguf)$",
        _as_is(3),
    ),
    _rule("juggernaut", r"juggernaut.*flux.*\.(?:safetensors|gguf)$", _as_is(3)),
    _rule(
        "sd35",
        r"^(?:sd3\.?5|stable[-_]diffusion[-_]3\.?5)[-_](?P<size>large|medium)(?P<turbo>[-_]turbo)?\.safetensors$",
        _sd35,
    ),
    _rule("generic_flux", r"flux.*\.(?:safetensors|gguf)$", _as_is(3)),
]


_FAMILY_BASE_VARIANT = {
    ArchitectureFamily.FLUX: ModelVariant.DEV,
    ArchitectureFamily.SD3: ModelVariant.SD35,
}


def _from_pattern(rule_index: int, match: PatternMatch) -> StandardizedModel:
    key = find_registry_key(match.standard_name, case_insensitive=True)
    if key is not None:
        return _from_registry(key, MatchMethod.PATTERN)

    name = match.standard_name
    family = match.architecture_family
    variant = _FAMILY_BASE_VARIANT[family]
    if family == ArchitectureFamily.FLUX:
        variant = detect_variant(name) or variant
    precision = _precision_from_name(name)
    return StandardizedModel(
        standard_name=name,
        variant=variant,
        architecture_family=family,
        precision_hint=precision,
        priority=match.priority,
        sub_priority=rule_index + 1,
        estimated_size_gb=estimate_size_gb(detect_quantization(name)),
        source=_derive_source(name, match.priority, family),
        quantization_tag=_quantization_tag(name, precision),
        method=MatchMethod.PATTERN,
    )


def match_pattern(file_name: str) -> Optional[StandardizedModel]:
    """Run the ordered pattern table; the first rule whose predicate matches wins."""
    for index, rule in enumerate(PATTERN_RULES):
        for candidate in lookup_candidates(file_name):
            m = rule.predicate(candidate)
            if m:
                logger.debug("Pattern rule %s matched %s", rule.name, candidate)
                return _from_pattern(index, rule.factory(m))
    return None


# =============================================================================
# Pipeline
# =============================================================================


def standardize(name: str, allow_fuzzy: bool = False) -> StandardizedModel:
    """
    Canonicalize a model file name.

    Args:
        name: File name or path, with or without extension.
        allow_fuzzy: Enable alias, similarity and pattern steps.

    Returns:
        StandardizedModel for the first step that matched.

    Raises:
        ModelNotFoundError: No step matched.
    """
    model = try_standardize(name, allow_fuzzy=allow_fuzzy)
    if model is not None:
        return model
    if not allow_fuzzy:
        raise ModelNotFoundError(model_name=name, reason="no registry entry matches")
    raise ModelNotFoundError(
        model_name=name,
        reason="no registry entry, alias, similar name or pattern matches",
        candidates=_closest_keys(base_file_name(name)),
    )


def try_standardize(name: str, allow_fuzzy: bool = False) -> Optional[StandardizedModel]:
    """Like standardize(), but returns None instead of raising."""
    return _run_pipeline(base_file_name(name), allow_fuzzy)


# Registry, aliases and rules are fixed at import, so results depend on the
# file name alone. Bounded because inventory names come from the server.
@functools.lru_cache(maxsize=4096)
def _run_pipeline(file_name: str, allow_fuzzy: bool) -> Optional[StandardizedModel]:
    candidates = lookup_candidates(file_name)

    for candidate in candidates:
        if candidate in MODEL_REGISTRY:
            return _from_registry(candidate, MatchMethod.EXACT)

    for candidate in candidates:
        key = find_registry_key(candidate, case_insensitive=True)
        if key is not None:
            return _from_registry(key, MatchMethod.CASE_INSENSITIVE)

    if not allow_fuzzy:
        return None

    for candidate in candidates:
        target = MODEL_ALIASES.get(candidate.lower())
        if target is not None:
            return _from_registry(target, MatchMethod.ALIAS)

    fuzzy = _best_fuzzy_match(candidates)
    if fuzzy is not None:
        key, score = fuzzy
        logger.debug("Fuzzy match %s -> %s (%.3f)", file_name, key, score)
        return _from_registry(key, MatchMethod.FUZZY, score)

    return match_pattern(file_name)


def _closest_keys(file_name: str, limit: int = 3) -> List[str]:
    scored = sorted(MODEL_REGISTRY, key=lambda key: -similarity(file_name, key))
    return scored[:limit]


# =============================================================================
# Helpers
# =============================================================================


def is_standardizable(name: str, allow_fuzzy: bool = False) -> bool:
    return try_standardize(name, allow_fuzzy=allow_fuzzy) is not None


def get_recommended_dtype(name: str) -> str:
    """Registry precision for a model, falling back to file-name heuristics."""
    try:
        model = standardize(name, allow_fuzzy=True)
    except ModelNotFoundError:
        return select_optimal_weight_dtype(name)
    if model.precision_hint in (Precision.DEFAULT, Precision.GGUF):
        return select_optimal_weight_dtype(model.standard_name)
    return model.precision_hint.value


def get_model_priority(name: str) -> Optional[Dict[str, Any]]:
    """Trust tier of a model as {category, priority, sub_priority}, or None."""
    try:
        model = standardize(name, allow_fuzzy=True)
    except ModelNotFoundError:
        return None
    return {
        "category": PRIORITY_CATEGORIES[model.priority],
        "priority": model.priority,
        "sub_priority": model.sub_priority,
    }


def get_models_by_source(source: str) -> List[str]:
    """Registry keys whose derived publisher matches, case-insensitively."""
    wanted = source.lower()
    return [
        key
        for key, entry in MODEL_REGISTRY.items()
        if _derive_source(key, entry.priority, entry.architecture_family).lower() == wanted
    ]
