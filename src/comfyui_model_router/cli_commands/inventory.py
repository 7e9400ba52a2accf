"""Inventory commands: inventory, cache stats, cache clear."""

from ..cli_utils import EXIT_OK, _add_common_args, _is_pretty, _output


def cmd_inventory(args):
    """Model files the ComfyUI server can load."""
    from ..discovery import fetch_checkpoint_inventory

    pretty = args.pretty or _is_pretty()
    files = fetch_checkpoint_inventory()
    _output({"files": files, "count": len(files)}, pretty)
    return EXIT_OK


def cmd_cache_stats(args):
    """Inventory cache statistics (per process; mostly useful with --fetch)."""
    from ..validation import ModelValidationManager

    pretty = args.pretty or _is_pretty()
    manager = ModelValidationManager()
    if args.fetch:
        manager.get_server_inventory()
    _output(manager.get_cache_stats(), pretty)
    return EXIT_OK


def cmd_cache_clear(args):
    """Clear the inventory cache of this process and report the empty state."""
    from ..validation import ModelValidationManager

    pretty = args.pretty or _is_pretty()
    manager = ModelValidationManager()
    manager.clear_cache()
    _output({"cleared": True, **manager.get_cache_stats()}, pretty)
    return EXIT_OK


def register_commands(sub, add_common=_add_common_args, **_kwargs):
    """Register inventory subcommands."""
    p_inv = sub.add_parser("inventory", help="List model files on the ComfyUI server")
    add_common(p_inv)
    p_inv.set_defaults(func=cmd_inventory)

    p_cache = sub.add_parser("cache", help="Inventory cache operations")
    cache_sub = p_cache.add_subparsers(dest="cache_command")

    p_cs = cache_sub.add_parser("stats", help="Inventory cache statistics")
    p_cs.add_argument("--fetch", action="store_true", help="Fetch the inventory first")
    add_common(p_cs)
    p_cs.set_defaults(func=cmd_cache_stats)

    p_cc = cache_sub.add_parser("clear", help="Clear the inventory cache")
    add_common(p_cc)
    p_cc.set_defaults(func=cmd_cache_clear)
