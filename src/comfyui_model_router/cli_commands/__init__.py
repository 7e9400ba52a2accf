"""CLI subcommand modules; each exposes register_commands(sub, add_common=...)."""
