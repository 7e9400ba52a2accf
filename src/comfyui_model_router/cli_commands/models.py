"""Model commands: list, stats, priority."""

from ..cli_utils import EXIT_NOT_FOUND, EXIT_OK, EXIT_VALIDATION, _add_common_args, _error, _is_pretty, _output


def cmd_models_list(args):
    """List registry models."""
    from .. import model_registry
    from ..types import ModelVariant

    pretty = args.pretty or _is_pretty()
    if args.variant:
        try:
            variant = ModelVariant(args.variant.lower())
        except ValueError:
            _output(_error(f"Unknown variant: {args.variant}", "VALIDATION_ERROR"), pretty)
            return EXIT_VALIDATION
        names = model_registry.get_models_by_variant(variant)
    else:
        names = model_registry.get_all_model_names()

    if args.priority:
        names = [name for name in names if model_registry.MODEL_REGISTRY[name].priority == args.priority]

    if args.source:
        from ..standardizer import get_models_by_source

        by_source = set(get_models_by_source(args.source))
        names = [name for name in names if name in by_source]

    _output({"models": names, "count": len(names)}, pretty)
    return EXIT_OK


def cmd_models_stats(args):
    """Registry counts per tier, variant and family."""
    from ..model_registry import get_registry_stats

    pretty = args.pretty or _is_pretty()
    _output(get_registry_stats(), pretty)
    return EXIT_OK


def cmd_models_priority(args):
    """Trust tier of a model."""
    from ..standardizer import get_model_priority

    pretty = args.pretty or _is_pretty()
    result = get_model_priority(args.name)
    if result is None:
        _output(_error(f"Model not found: {args.name}", "MODEL_NOT_FOUND"), pretty)
        return EXIT_NOT_FOUND
    _output({"name": args.name, **result}, pretty)
    return EXIT_OK


def register_commands(sub, add_common=_add_common_args, **_kwargs):
    """Register model subcommands."""
    p_models = sub.add_parser("models", help="Model registry operations")
    models_sub = p_models.add_subparsers(dest="models_command")

    p_ml = models_sub.add_parser("list", help="List registry models")
    p_ml.add_argument("--variant", help="Variant: dev, schnell, kontext, krea, fill, redux, lite, mini, sd35")
    p_ml.add_argument("--priority", type=int, choices=[1, 2, 3], help="Priority tier")
    p_ml.add_argument("--source", help="Publisher, e.g. black-forest-labs, city96")
    add_common(p_ml)
    p_ml.set_defaults(func=cmd_models_list)

    p_ms = models_sub.add_parser("stats", help="Registry statistics")
    add_common(p_ms)
    p_ms.set_defaults(func=cmd_models_stats)

    p_mp = models_sub.add_parser("priority", help="Trust tier of a model")
    p_mp.add_argument("name", help="Model file name")
    add_common(p_mp)
    p_mp.set_defaults(func=cmd_models_priority)
