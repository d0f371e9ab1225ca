"""Extension commands -- ``install``, ``uninstall``, and ``list``.

These are registered directly on the root Typer app. Each resolves the
:class:`~kcext.models.ServerConfig` from the root options stored in
``ctx.obj``, does its work through
:class:`~kcext.pipeline.InstallPipeline` or
:class:`~kcext.manager.ExtensionManager`, and turns any
:class:`~kcext.exceptions.KcextError` into an ``Error:`` line plus the
error's exit code.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from kcext.exceptions import KcextError
from kcext.exit_codes import EXIT_INVALID_USAGE
from kcext.models import ServerConfig
from kcext.output import error, info, print_names, success, suggest


def _exit_with(exc: KcextError) -> NoReturn:
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)


def _server_config(ctx: typer.Context) -> ServerConfig:
    from kcext.config import resolve_config

    obj = ctx.obj or {}
    try:
        return resolve_config(
            cli_keycloak_path=obj.get("keycloak_path"),
            cli_work_dir=obj.get("work_dir"),
        )
    except KcextError as exc:
        _exit_with(exc)


def install_command(
    ctx: typer.Context,
    url: str = typer.Option(
        ..., "--url", "-u",
        help="Git URL of the extension to install.",
    ),
) -> None:
    """Install a Keycloak extension from its source repository.

    Clones the repository into the working directory, builds it with Maven,
    copies the single ``*.<packaging>`` artifact from ``target/`` into
    ``$KEYCLOAK_PATH/providers``, then rebuilds and restarts Keycloak.
    The first failing stage stops the install.

    Example::

        kcext install --url=https://github.com/lamoboos223/keycloak-dummy-otp-extension
    """
    from kcext.models import PipelineRequest
    from kcext.pipeline import InstallPipeline
    from kcext.stages import StageRunner

    if not url.strip():
        error("--url must not be empty.")
        suggest("Usage: kcext install --url=https://github.com/<owner>/<extension>")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    config = _server_config(ctx)
    request = PipelineRequest(source_url=url.strip(), work_dir=config.work_dir)

    info(f"Start downloading Keycloak extension [{request.source_url}] ...")
    with StageRunner(timeout=config.stage_timeout) as runner:
        pipeline = InstallPipeline(config, runner)
        try:
            installed = pipeline.run(request)
        except KcextError as exc:
            _exit_with(exc)

    success(f"Installed {installed.name}")


def uninstall_command(
    ctx: typer.Context,
    file: str = typer.Option(
        ..., "--file", "-f",
        help="Extension file name (or glob) in the providers directory.",
    ),
) -> None:
    """Uninstall a Keycloak extension, then rebuild and restart Keycloak.

    Nothing is rebuilt when no installed file matches.

    Example::

        kcext uninstall --file=keycloak-dummy-otp-extension-1.0.jar
        kcext uninstall --file='keycloak-dummy-otp-*.jar'
    """
    from kcext.manager import ExtensionManager
    from kcext.stages import StageRunner

    config = _server_config(ctx)
    with StageRunner(timeout=config.stage_timeout) as runner:
        try:
            ExtensionManager(config, runner).uninstall(file)
        except KcextError as exc:
            _exit_with(exc)


def list_command(ctx: typer.Context) -> None:
    """List installed Keycloak extensions.

    Prints the file names found directly in ``$KEYCLOAK_PATH/providers``.

    Example::

        kcext list
        kcext --json list
    """
    from kcext.manager import ExtensionManager
    from kcext.stages import StageRunner

    config = _server_config(ctx)
    with StageRunner() as runner:
        try:
            names = ExtensionManager(config, runner).list_extensions()
        except KcextError as exc:
            _exit_with(exc)

    info("Listing installed extensions:")
    if print_names(names, title="Installed extensions") == 0:
        info("No extensions installed.")
