"""File-name helpers shared by the registry, standardizer, validator and detector."""

from typing import List

# Extensions a registry key may carry
MODEL_EXTENSIONS = (".safetensors", ".gguf")

# Extensions stripped when comparing model identifiers
IDENTIFIER_EXTENSIONS = (".safetensors", ".gguf", ".ckpt", ".pt")

# Provider prefixes callers put in front of model ids (e.g. "comfyui/flux1-dev")
ROUTING_PREFIXES = ("comfyui/",)


def strip_routing_prefix(model_id: str) -> str:
    """Remove a known routing prefix, case-insensitively."""
    lower = model_id.lower()
    for prefix in ROUTING_PREFIXES:
        if lower.startswith(prefix):
            return model_id[len(prefix):]
    return model_id


def base_file_name(name: str) -> str:
    """Strip directory components, keeping the trailing file name."""
    name = name.strip().replace("\\", "/")
    tail = name.rsplit("/", 1)[-1]
    return tail or name


def has_model_extension(name: str) -> bool:
    return name.lower().endswith(MODEL_EXTENSIONS)


def strip_identifier_extension(name: str) -> str:
    lower = name.lower()
    for ext in IDENTIFIER_EXTENSIONS:
        if lower.endswith(ext):
            return name[: -len(ext)]
    return name


def lookup_candidates(file_name: str) -> List[str]:
    """
    Names to try for a registry lookup.

    A name that already carries a model extension is tried as-is; a bare
    name ("flux1-dev") is tried with each known extension appended.
    """
    if has_model_extension(file_name):
        return [file_name]
    return [file_name + ext for ext in MODEL_EXTENSIONS]
