"""
Model Resolver

Registry-only lookups for the rest of the application. No fuzzy matching:
a name resolves only when it is a registry key, ignoring case, directory
components and a missing extension.
"""

from typing import List, Optional

from core.errors import ModelNotFoundError

from .model_registry import RegistryEntry, MODEL_REGISTRY, find_registry_key, get_all_model_names
from .naming import base_file_name, lookup_candidates


def _find_key(name: str) -> Optional[str]:
    candidates = lookup_candidates(base_file_name(name))
    for case_insensitive in (False, True):
        for candidate in candidates:
            key = find_registry_key(candidate, case_insensitive=case_insensitive)
            if key is not None:
                return key
    return None


def resolve_model(name: str) -> Optional[RegistryEntry]:
    """Registry entry for a model name, or None."""
    key = _find_key(name)
    return MODEL_REGISTRY[key] if key is not None else None


def resolve_model_strict(name: str) -> RegistryEntry:
    """
    Registry entry for a model name.

    Raises:
        ModelNotFoundError: The name is not a registry key.
    """
    entry = resolve_model(name)
    if entry is None:
        raise ModelNotFoundError(model_name=name, reason="not in model registry")
    return entry


def resolve_model_key(name: str) -> Optional[str]:
    """Registry key (canonical file name) for a model name, or None."""
    return _find_key(name)


def is_valid_model(name: str) -> bool:
    return _find_key(name) is not None


def get_all_models() -> List[str]:
    return get_all_model_names()
