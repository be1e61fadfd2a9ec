"""Config commands -- view and modify global configuration.

Provides the ``specview config`` sub-command group for reading,
updating, and resetting the user's global configuration file
(:class:`~specview.models.GlobalConfig`), plus a ``rewrite`` group that
manages the ordered ``$ref`` rewrite rules.
"""

from __future__ import annotations

import typer

from specview.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)
rewrite_app = typer.Typer(no_args_is_help=True)
config_app.add_typer(rewrite_app, name="rewrite", help="Manage $ref rewrite rules.")


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        specview config show
        specview --json config show
    """
    from specview.config import get_config_dir, load_global_config
    from specview.exceptions import ConfigError

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'server.port')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, or str). Rewrite rules are managed
    with ``specview config rewrite``.

    Example::

        specview config set server.port 9000
        specview config set cache.persistent true
        specview config set output.document_format yaml
    """
    from specview.config import load_global_config, save_global_config
    from specview.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    else:
        coerced = value  # type: ignore[assignment]

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        specview --force config reset
    """
    from specview.config import save_global_config
    from specview.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


@rewrite_app.command("list")
def rewrite_list() -> None:
    """List rewrite rules in the order they are applied."""
    from specview.config import load_global_config

    rules = load_global_config().rewrite
    if not rules:
        info("No rewrite rules configured.")
        return
    format_response(rules)


@rewrite_app.command("add")
def rewrite_add(
    pattern: str = typer.Argument(help="Regular expression matched against $ref values."),
    replacement: str = typer.Argument(help="Literal replacement text."),
) -> None:
    """Append a rewrite rule (or replace the replacement of an existing pattern).

    Example::

        specview config rewrite add '^@shared/' '../shared/'
    """
    from specview.config import load_global_config, save_global_config
    from specview.exceptions import ConfigError
    from specview.parser.rewriter import RewriteRule

    try:
        RewriteRule(pattern, replacement)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    config = load_global_config()
    rules = dict(config.rewrite)
    rules[pattern] = replacement
    save_global_config(config.model_copy(update={"rewrite": rules}))
    success(f"Rewrite rule added: {pattern} -> {replacement}")


@rewrite_app.command("remove")
def rewrite_remove(
    pattern: str = typer.Argument(help="Pattern of the rule to remove."),
) -> None:
    """Remove the rewrite rule with the given pattern."""
    from specview.config import load_global_config, save_global_config

    config = load_global_config()
    if pattern not in config.rewrite:
        error(f"No rewrite rule for pattern: {pattern}")
        raise typer.Exit(code=2)
    rules = {k: v for k, v in config.rewrite.items() if k != pattern}
    save_global_config(config.model_copy(update={"rewrite": rules}))
    success(f"Rewrite rule removed: {pattern}")
