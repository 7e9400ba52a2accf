"""
Model Registry - Single Source of Truth for Known Model Files

Static table of model file names (as the ComfyUI server reports them) and their
metadata: trust tier, architecture family, variant and recommended precision.
The table is validated at import time; a malformed entry raises ConfigError.

Priority tiers:
    1 = official / vendor release
    2 = enterprise / optimized (quantized, distilled)
    3 = community fine-tune or merge

Usage:
    from .model_registry import (
        MODEL_REGISTRY,
        MODEL_ALIASES,
        get_model_config,
        get_models_by_variant,
        get_all_model_names,
    )
"""

from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from core.errors import ConfigError

from .naming import MODEL_EXTENSIONS
from .types import ArchitectureFamily, ModelVariant, Precision, RegistryEntryDict

V = ModelVariant
P = Precision


# =============================================================================
# Registry Entry
# =============================================================================


@dataclass(frozen=True)
class RegistryEntry:
    """Metadata for one known model file."""

    priority: int
    architecture_family: ArchitectureFamily
    variant: ModelVariant
    recommended_precision: Precision = Precision.DEFAULT

    def to_dict(self) -> RegistryEntryDict:
        return {
            "priority": self.priority,
            "architecture_family": self.architecture_family.value,
            "variant": self.variant.value,
            "recommended_precision": self.recommended_precision.value,
        }


PRIORITY_CATEGORIES = {1: "official", 2: "enterprise", 3: "community"}


def _flux(priority: int, variant: ModelVariant, precision: Precision = P.DEFAULT) -> RegistryEntry:
    return RegistryEntry(priority, ArchitectureFamily.FLUX, variant, precision)


def _sd3(priority: int) -> RegistryEntry:
    return RegistryEntry(priority, ArchitectureFamily.SD3, V.SD35, P.DEFAULT)


# GGUF quantization levels published for every FLUX.1 base model
_GGUF_LEVELS = ["F16", "Q8_0", "Q6_K", "Q5_K_M", "Q5_K_S", "Q4_K_M", "Q4_K_S", "Q4_0", "Q3_K_M", "Q3_K_S", "Q2_K"]

# Canonical file stem for each FLUX.1 base variant
FLUX_BASE_STEMS = {
    V.DEV: "flux1-dev",
    V.SCHNELL: "flux1-schnell",
    V.KONTEXT: "flux1-kontext-dev",
    V.KREA: "flux1-krea-dev",
}


def _gguf_series(variant: ModelVariant) -> Dict[str, RegistryEntry]:
    stem = FLUX_BASE_STEMS[variant]
    return {f"{stem}-{level}.gguf": _flux(2, variant, P.GGUF) for level in _GGUF_LEVELS}


# =============================================================================
# Registry Data (ordered: P1 -> P2 -> P3)
# =============================================================================

MODEL_REGISTRY: Dict[str, RegistryEntry] = {
    # === Priority 1: official releases ===
    "flux1-dev.safetensors": _flux(1, V.DEV),
    "flux1-schnell.safetensors": _flux(1, V.SCHNELL),
    "flux1-kontext-dev.safetensors": _flux(1, V.KONTEXT),
    "flux1-krea-dev.safetensors": _flux(1, V.KREA),
    "flux1-fill-dev.safetensors": _flux(1, V.FILL),
    "flux1-redux-dev.safetensors": _flux(1, V.REDUX),
    "sd3.5_large.safetensors": _sd3(1),
    # === Priority 2: enterprise lightweight ===
    "flux.1-lite-8B.safetensors": _flux(2, V.LITE),
    "flux.1-lite-8B-alpha.safetensors": _flux(2, V.LITE),
    "flux-mini.safetensors": _flux(2, V.MINI),
    "FLUX_Mini_3_2B.safetensors": _flux(2, V.MINI),
    "flux_shakker_labs_union_pro-fp8_e4m3fn.safetensors": _flux(2, V.DEV, P.FP8_E4M3FN),
    # === Priority 2: GGUF series ===
    **_gguf_series(V.DEV),
    **_gguf_series(V.SCHNELL),
    **_gguf_series(V.KONTEXT),
    **_gguf_series(V.KREA),
    # === Priority 2: FP8 series ===
    "flux1-dev-fp8-e4m3fn.safetensors": _flux(2, V.DEV, P.FP8_E4M3FN),
    "flux1-dev-fp8-e5m2.safetensors": _flux(2, V.DEV, P.FP8_E5M2),
    "flux1-schnell-fp8-e4m3fn.safetensors": _flux(2, V.SCHNELL, P.FP8_E4M3FN),
    "flux1-schnell-fp8-e5m2.safetensors": _flux(2, V.SCHNELL, P.FP8_E5M2),
    "flux1-kontext-dev-fp8-e4m3fn.safetensors": _flux(2, V.KONTEXT, P.FP8_E4M3FN),
    "flux1-kontext-dev-fp8-e5m2.safetensors": _flux(2, V.KONTEXT, P.FP8_E5M2),
    "flux1-krea-dev-fp8-e4m3fn.safetensors": _flux(2, V.KREA, P.FP8_E4M3FN),
    # === Priority 2: NF4 series ===
    "flux1-dev-bnb-nf4.safetensors": _flux(2, V.DEV, P.NF4),
    "flux1-dev-bnb-nf4-v2.safetensors": _flux(2, V.DEV, P.NF4),
    "flux1-schnell-bnb-nf4.safetensors": _flux(2, V.SCHNELL, P.NF4),
    "flux1-kontext-dev-bnb-nf4.safetensors": _flux(2, V.KONTEXT, P.NF4),
    "flux1-krea-dev-bnb-nf4.safetensors": _flux(2, V.KREA, P.NF4),
    # === Priority 2: advanced quantization ===
    "flux1-dev-svdquant-w4a4.safetensors": _flux(2, V.DEV, P.INT4),
    "flux1-schnell-svdquant-w4a4.safetensors": _flux(2, V.SCHNELL, P.INT4),
    "flux1-dev-torchao-int8.safetensors": _flux(2, V.DEV, P.INT8),
    "flux1-dev-torchao-int4.safetensors": _flux(2, V.DEV, P.INT4),
    "flux1-schnell-torchao-int8.safetensors": _flux(2, V.SCHNELL, P.INT8),
    "flux1-dev-quanto-qfloat8.safetensors": _flux(2, V.DEV),
    "flux1-schnell-quanto-qfloat8.safetensors": _flux(2, V.SCHNELL),
    "flux1-dev-mflux-q4.safetensors": _flux(2, V.DEV),
    "flux1-schnell-mflux-q4.safetensors": _flux(2, V.SCHNELL),
    "sd3.5_large_turbo.safetensors": _sd3(2),
    # === Priority 3: community ===
    "Jib_Mix_Flux_v8_schnell.safetensors": _flux(3, V.SCHNELL),
    "Jib_mix_Flux_V11_Krea_b_00001_.safetensors": _flux(3, V.DEV),
    "jibMixFlux_v8.q4_0.gguf": _flux(3, V.DEV),
    "real_dream_flux_v1.safetensors": _flux(3, V.DEV),
    "real_dream_flux_beta.safetensors": _flux(3, V.DEV),
    "real_dream_flux_release.safetensors": _flux(3, V.DEV),
    "realDream_flux1V1.safetensors": _flux(3, V.DEV),
    "realDream_flux1V1_schnell.safetensors": _flux(3, V.SCHNELL),
    "vision_realistic_flux_dev_v2.safetensors": _flux(3, V.DEV),
    "vision_realistic_flux_dev_fp8_no_clip_v2.safetensors": _flux(3, V.DEV, P.FP8_E4M3FN),
    "vision_realistic_flux_v2_fp8.safetensors": _flux(3, V.DEV, P.FP8_E4M3FN),
    "vision_realistic_flux_v2_dev.safetensors": _flux(3, V.DEV),
    "vision_realistic_flux_shakker.safetensors": _flux(3, V.DEV),
    "flux_fusion_v2_4steps.safetensors": _flux(3, V.DEV),
    "flux_fusion_ds_merge.safetensors": _flux(3, V.DEV),
    "flux_fusion_v2_tensorart.safetensors": _flux(3, V.DEV),
    "PixelWave_FLUX.1-dev_03.safetensors": _flux(3, V.DEV),
    "PixelWave_FLUX.1-schnell_04.safetensors": _flux(3, V.SCHNELL),
    "Fux_Capacity_NSFW_v3.safetensors": _flux(3, V.DEV),
    "FuxCapacity2.1-Q8_0.gguf": _flux(3, V.DEV),
    "FuxCapacity3.0_FP8.safetensors": _flux(3, V.DEV, P.FP8_E4M3FN),
    "FuxCapacity3.1_FP16.safetensors": _flux(3, V.DEV, P.FP16),
    "FluxMania_Kreamania_v1.safetensors": _flux(3, V.DEV),
    "Fluxmania_IV_fp8.safetensors": _flux(3, V.DEV, P.FP8_E4M3FN),
    "Fluxmania_V6I.safetensors": _flux(3, V.DEV),
    "Fluxmania_V6I_fp16.safetensors": _flux(3, V.DEV, P.FP16),
    "Fluxed_Up_NSFW_v2.safetensors": _flux(3, V.DEV),
    "flux.1-ultra-realphoto-v2.safetensors": _flux(3, V.DEV),
    "f.1-dev-schnell-8steps-fp8.safetensors": _flux(3, V.DEV, P.FP8_E4M3FN),
    "flux-muchen-asian.safetensors": _flux(3, V.DEV),
    "moyou-film-flux.safetensors": _flux(3, V.DEV),
    "firefly-fantasy-flux.safetensors": _flux(3, V.DEV),
    "flux-yanling-anime.safetensors": _flux(3, V.DEV),
    "Acorn_Spinning_FLUX_photorealism.safetensors": _flux(3, V.DEV),
    "CreArt_Hyper_Flux_Dev_8steps.safetensors": _flux(3, V.DEV),
    "Flux_Unchained_SCG_mixed.safetensors": _flux(3, V.DEV),
    "RealFlux_1.0b_Dev_Transformer.safetensors": _flux(3, V.DEV),
    "RealFlux_1.0b_Schnell.safetensors": _flux(3, V.SCHNELL),
    "UltraReal_FineTune_v4.safetensors": _flux(3, V.DEV),
    "UltraRealistic_FineTune_Project_v4.safetensors": _flux(3, V.DEV),
    "XPlus_2(GGUF_Q4).gguf": _flux(3, V.DEV),
    "XPlus_2(GGUF_Q6).gguf": _flux(3, V.DEV),
    "XPlus_2(GGUF_Q8).gguf": _flux(3, V.DEV),
    "educational-flux-simplified.safetensors": _flux(3, V.DEV),
    "flux-depth-fp16.safetensors": _flux(3, V.KONTEXT, P.FP16),
    "flux-fill-object-removal.safetensors": _flux(3, V.KONTEXT),
    "flux-medical-environment-lora.safetensors": _flux(3, V.KONTEXT),
    "flux-schnell-dev-merged-fp8.safetensors": _flux(3, V.SCHNELL, P.FP8_E4M3FN),
    "schnellMODE_FLUX_S_v5_1.safetensors": _flux(3, V.SCHNELL),
    "NF4_BnB_FLUX_dev_optimized.safetensors": _flux(3, V.DEV, P.NF4),
    "sd3.5_medium.safetensors": _sd3(3),
}


# =============================================================================
# Aliases - known historical renames (lower-cased alias -> registry key)
# =============================================================================

MODEL_ALIASES: Dict[str, str] = {
    "flux-dev.safetensors": "flux1-dev.safetensors",
    "flux_dev.safetensors": "flux1-dev.safetensors",
    "flux.1-dev.safetensors": "flux1-dev.safetensors",
    "flux_1_dev.safetensors": "flux1-dev.safetensors",
    "flux1_dev.safetensors": "flux1-dev.safetensors",
    "flux-schnell.safetensors": "flux1-schnell.safetensors",
    "flux_schnell.safetensors": "flux1-schnell.safetensors",
    "flux.1-schnell.safetensors": "flux1-schnell.safetensors",
    "flux_1_schnell.safetensors": "flux1-schnell.safetensors",
    "flux1_schnell.safetensors": "flux1-schnell.safetensors",
    "flux-kontext-dev.safetensors": "flux1-kontext-dev.safetensors",
    "flux.1-kontext-dev.safetensors": "flux1-kontext-dev.safetensors",
    "flux1_kontext_dev.safetensors": "flux1-kontext-dev.safetensors",
    "flux-krea-dev.safetensors": "flux1-krea-dev.safetensors",
    "flux.1-krea-dev.safetensors": "flux1-krea-dev.safetensors",
    "flux1_krea_dev.safetensors": "flux1-krea-dev.safetensors",
    "flux.1-fill-dev.safetensors": "flux1-fill-dev.safetensors",
    "flux.1-redux-dev.safetensors": "flux1-redux-dev.safetensors",
    "flux1-dev-fp8.safetensors": "flux1-dev-fp8-e4m3fn.safetensors",
    "flux1-schnell-fp8.safetensors": "flux1-schnell-fp8-e4m3fn.safetensors",
    "flux1-kontext-dev-fp8.safetensors": "flux1-kontext-dev-fp8-e4m3fn.safetensors",
    "flux1-krea-dev-fp8.safetensors": "flux1-krea-dev-fp8-e4m3fn.safetensors",
    "flux1-dev-nf4.safetensors": "flux1-dev-bnb-nf4.safetensors",
    "sd3.5-large.safetensors": "sd3.5_large.safetensors",
    "sd3.5-large-turbo.safetensors": "sd3.5_large_turbo.safetensors",
    "sd3.5-medium.safetensors": "sd3.5_medium.safetensors",
}


# =============================================================================
# Load-time Validation
# =============================================================================


def validate_registry(registry: Dict[str, RegistryEntry], aliases: Dict[str, str]) -> None:
    """
    Check registry and alias table invariants.

    Raises:
        ConfigError: on an unsupported extension, an unknown priority tier,
            two keys that collide case-insensitively, or an alias that does
            not point at a registry key.
    """
    bad_extension = [key for key in registry if not key.lower().endswith(MODEL_EXTENSIONS)]
    if bad_extension:
        raise ConfigError(
            message=f"Registry keys must end with one of {', '.join(MODEL_EXTENSIONS)}",
            reason=ConfigError.REGISTRY_ERROR,
            entries=bad_extension,
        )

    bad_priority = [key for key, entry in registry.items() if entry.priority not in PRIORITY_CATEGORIES]
    if bad_priority:
        raise ConfigError(
            message="Registry priorities must be 1, 2 or 3",
            reason=ConfigError.REGISTRY_ERROR,
            entries=bad_priority,
        )

    seen: Dict[str, str] = {}
    collisions = []
    for key in registry:
        lower = key.lower()
        if lower in seen:
            collisions.append(f"{seen[lower]} / {key}")
        seen[lower] = key
    if collisions:
        raise ConfigError(
            message="Registry keys collide when compared case-insensitively",
            reason=ConfigError.REGISTRY_ERROR,
            entries=collisions,
        )

    dangling = [f"{alias} -> {target}" for alias, target in aliases.items() if target not in registry]
    if dangling:
        raise ConfigError(
            message="Alias targets must be registry keys",
            reason=ConfigError.INVALID_CONFIG,
            entries=dangling,
        )


validate_registry(MODEL_REGISTRY, MODEL_ALIASES)

# Lower-cased key -> registry key, in registry order
_LOWER_INDEX: Dict[str, str] = {key.lower(): key for key in MODEL_REGISTRY}


# =============================================================================
# Query Interface
# =============================================================================


def find_registry_key(file_name: str, case_insensitive: bool = False) -> Optional[str]:
    """Return the registry key for a file name, or None."""
    if file_name in MODEL_REGISTRY:
        return file_name
    if case_insensitive:
        return _LOWER_INDEX.get(file_name.lower())
    return None


def get_model_config(
    model_name: str,
    case_insensitive: bool = False,
    family: Optional[ArchitectureFamily] = None,
    priority: Optional[int] = None,
    precision: Optional[Precision] = None,
    variant: Optional[ModelVariant] = None,
) -> Optional[RegistryEntry]:
    """
    Look up a single registry entry, optionally filtered.

    Args:
        model_name: Exact registry key (file name).
        case_insensitive: Fall back to a case-insensitive key match.
        family, priority, precision, variant: Every given filter must match.

    Returns:
        The entry, or None if missing or filtered out.
    """
    key = find_registry_key(model_name, case_insensitive=case_insensitive)
    if key is None:
        return None
    entry = MODEL_REGISTRY[key]

    if family is not None and entry.architecture_family != family:
        return None
    if priority is not None and entry.priority != priority:
        return None
    if precision is not None and entry.recommended_precision != precision:
        return None
    if variant is not None and entry.variant != variant:
        return None
    return entry


def get_models_by_variant(variant: ModelVariant) -> List[str]:
    """Registry keys of a variant, best priority first (registry order within a tier)."""
    matching = [key for key, entry in MODEL_REGISTRY.items() if entry.variant == variant]
    return sorted(matching, key=lambda key: MODEL_REGISTRY[key].priority)


def get_models_by_priority(priority: int) -> List[str]:
    return [key for key, entry in MODEL_REGISTRY.items() if entry.priority == priority]


def get_all_model_names() -> List[str]:
    return list(MODEL_REGISTRY.keys())


def get_tier_position(key: str) -> int:
    """1-based position of a registry key within its priority tier."""
    tier = get_models_by_priority(MODEL_REGISTRY[key].priority)
    return tier.index(key) + 1


def get_registry_stats() -> Dict[str, Any]:
    """Counts per priority tier, variant and family."""
    by_priority: Dict[str, int] = {}
    by_variant: Dict[str, int] = {}
    by_family: Dict[str, int] = {}
    for entry in MODEL_REGISTRY.values():
        category = PRIORITY_CATEGORIES[entry.priority]
        by_priority[category] = by_priority.get(category, 0) + 1
        by_variant[entry.variant.value] = by_variant.get(entry.variant.value, 0) + 1
        by_family[entry.architecture_family.value] = by_family.get(entry.architecture_family.value, 0) + 1
    return {
        "total": len(MODEL_REGISTRY),
        "aliases": len(MODEL_ALIASES),
        "by_priority": by_priority,
        "by_variant": by_variant,
        "by_family": by_family,
    }
