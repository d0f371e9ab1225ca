"""Config commands -- view and modify the user configuration file.

Provides the ``kcext config`` sub-command group. Values saved here sit
below environment variables and CLI flags in the precedence chain (see
:func:`kcext.config.resolve_config`).
"""

from __future__ import annotations

import typer

from kcext.exceptions import KcextError
from kcext.exit_codes import EXIT_INVALID_USAGE
from kcext.output import error, info, print_mapping, success


config_app = typer.Typer(
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Combines the config file, environment variables, and root CLI flags,
    exactly as ``install``/``uninstall``/``list`` would see them.

    Example::

        kcext config show
        kcext --json config show
    """
    from kcext.config import config_file_path, resolve_config

    obj = ctx.obj or {}
    try:
        config = resolve_config(
            cli_keycloak_path=obj.get("keycloak_path"),
            cli_work_dir=obj.get("work_dir"),
        )
    except KcextError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    info(f"Config file: {config_file_path()}")
    data = config.model_dump(mode="json")
    data["plugin_dir"] = str(config.plugin_dir) if config.plugin_dir else None
    print_mapping(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key, e.g. 'keycloak_path' or 'service_name'."),
    value: str = typer.Argument(help="Value to set. Use 'null' to clear an optional key."),
) -> None:
    """Set a value in the config file.

    The value is validated against the configuration model before the file
    is rewritten.

    Example::

        kcext config set keycloak_path /opt/keycloak
        kcext config set stage_timeout 900
        kcext config set stage_timeout null
    """
    from pydantic import ValidationError

    from kcext.config import load_file_config, save_file_config
    from kcext.models import ServerConfig

    try:
        current = load_file_config()
    except KcextError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    if key not in ServerConfig.model_fields:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    data = current.model_dump(mode="json")
    data[key] = None if value.lower() == "null" else value

    try:
        updated = ServerConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Invalid value for {key}: {exc.errors()[0]['msg']}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_file_config(updated)
    success(f"Set {key} = {getattr(updated, key)}")
