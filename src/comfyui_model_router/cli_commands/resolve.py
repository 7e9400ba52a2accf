"""Resolution commands: resolve, standardize, validate, detect, route, explain, dtype."""

from ..cli_utils import (
    EXIT_NOT_FOUND,
    EXIT_OK,
    _add_common_args,
    _add_fuzzy_arg,
    _is_pretty,
    _output,
    _parse_json_arg,
)


def _validation_manager(args):
    from ..validation import ModelValidationManager

    return ModelValidationManager(allow_fuzzy=getattr(args, "fuzzy", False))


def cmd_resolve(args):
    """Registry lookup (no fuzzy matching, no server call)."""
    from .. import resolver
    from ..model_registry import MODEL_REGISTRY

    pretty = args.pretty or _is_pretty()
    key = resolver.resolve_model_key(args.name)
    if key is None:
        _output({"found": False, "name": args.name}, pretty)
        return EXIT_NOT_FOUND
    _output({"found": True, "name": args.name, "model": key, **MODEL_REGISTRY[key].to_dict()}, pretty)
    return EXIT_OK


def cmd_standardize(args):
    """Canonical model identity for a file name."""
    from ..standardizer import standardize

    pretty = args.pretty or _is_pretty()
    _output(standardize(args.name, allow_fuzzy=args.fuzzy).to_dict(), pretty)
    return EXIT_OK


def cmd_validate(args):
    """Check the model exists on the ComfyUI server."""
    pretty = args.pretty or _is_pretty()
    result = _validation_manager(args).validate_model_existence(args.model_id)
    _output(result.to_dict(), pretty)
    return EXIT_OK


def cmd_detect(args):
    """Architecture / variant detection."""
    from ..type_detector import detect_model_type

    pretty = args.pretty or _is_pretty()
    result = detect_model_type(args.model_id)
    _output(result.to_dict(), pretty)
    return EXIT_OK if result.is_supported else EXIT_NOT_FOUND


def cmd_route(args):
    """Workflow builder selection."""
    from ..router import select_builder
    from ..type_detector import detect_model_type

    pretty = args.pretty or _is_pretty()
    detection = detect_model_type(args.model_id)
    selection = select_builder(args.model_id, detection)
    _output({"model_id": args.model_id, "detection": detection.to_dict(), **selection.to_dict()}, pretty)
    return EXIT_OK


def cmd_explain(args):
    """Validation + detection + builder selection in one report."""
    from ..engine import ModelResolutionEngine

    pretty = args.pretty or _is_pretty()
    result = ModelResolutionEngine(_validation_manager(args)).explain(args.model_id)
    _output(result, pretty)
    return EXIT_OK


def cmd_dtype(args):
    """Recommended ComfyUI weight_dtype for a model file."""
    from ..quantization import select_optimal_weight_dtype
    from ..standardizer import get_recommended_dtype

    pretty = args.pretty or _is_pretty()
    params = _parse_json_arg(args.params) if args.params else None
    if params:
        weight_dtype = select_optimal_weight_dtype(args.name, params)
    else:
        weight_dtype = get_recommended_dtype(args.name)
    _output({"name": args.name, "weight_dtype": weight_dtype}, pretty)
    return EXIT_OK


def register_commands(sub, add_common=_add_common_args, **_kwargs):
    """Register resolution subcommands."""
    p_res = sub.add_parser("resolve", help="Look up a model in the registry")
    p_res.add_argument("name", help="Model file name")
    add_common(p_res)
    p_res.set_defaults(func=cmd_resolve)

    p_std = sub.add_parser("standardize", help="Canonical identity for a model file name")
    p_std.add_argument("name", help="Model file name or path")
    _add_fuzzy_arg(p_std)
    add_common(p_std)
    p_std.set_defaults(func=cmd_standardize)

    p_val = sub.add_parser("validate", help="Check a model exists on the ComfyUI server")
    p_val.add_argument("model_id", help="Model id, e.g. comfyui/flux1-dev")
    _add_fuzzy_arg(p_val)
    add_common(p_val)
    p_val.set_defaults(func=cmd_validate)

    p_det = sub.add_parser("detect", help="Detect architecture and variant")
    p_det.add_argument("model_id", help="Model id")
    add_common(p_det)
    p_det.set_defaults(func=cmd_detect)

    p_route = sub.add_parser("route", help="Select the workflow builder for a model")
    p_route.add_argument("model_id", help="Model id")
    add_common(p_route)
    p_route.set_defaults(func=cmd_route)

    p_exp = sub.add_parser("explain", help="Validation, detection and routing report")
    p_exp.add_argument("model_id", help="Model id")
    _add_fuzzy_arg(p_exp)
    add_common(p_exp)
    p_exp.set_defaults(func=cmd_explain)

    p_dt = sub.add_parser("dtype", help="Recommended weight_dtype for a model file")
    p_dt.add_argument("name", help="Model file name")
    p_dt.add_argument("--params", help='JSON params, e.g. \'{"weight_dtype": "fp16"}\' (or @file.json)')
    add_common(p_dt)
    p_dt.set_defaults(func=cmd_dtype)
