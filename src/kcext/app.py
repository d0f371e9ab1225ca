"""Typer application and CLI entry point for kcext.

This module wires together the root Typer application: the global options
callback, the ``install``/``uninstall``/``list`` commands, and the ``config``
sub-group.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler and invokes the Typer app.
:class:`~kcext.exceptions.KcextError` instances that escape a command are
reported and mapped to their exit code; anything else is written to a crash
log under the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from kcext import __version__
from kcext.commands.config import config_app
from kcext.commands.extensions import install_command, list_command, uninstall_command
from kcext.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="kcext",
    help="Install, list, and uninstall Keycloak extensions.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("install")(install_command)
app.command("uninstall")(uninstall_command)
app.command("list")(list_command)
app.add_typer(config_app, name="config", help="Configuration management.")

_log_handler: Optional[logging.Handler] = None


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"kcext {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route ``kcext.*`` log records to stderr when ``--verbose`` is active.

    The handler is rebuilt on every invocation so it always writes to the
    current ``sys.stderr``.
    """
    global _log_handler
    package_logger = logging.getLogger("kcext")
    if _log_handler is not None:
        package_logger.removeHandler(_log_handler)
        _log_handler = None

    if verbose:
        _log_handler = logging.StreamHandler(sys.stderr)
        _log_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        package_logger.addHandler(_log_handler)
        package_logger.setLevel(logging.DEBUG)
    else:
        package_logger.setLevel(logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    keycloak_path: Optional[str] = typer.Option(
        None, "--keycloak-path", "-k",
        help="Keycloak installation root. Overrides $KEYCLOAK_PATH.",
    ),
    work_dir: Optional[str] = typer.Option(
        None, "--work-dir", "-w",
        help="Directory the extension source is cloned into. Overrides $KCEXT_WORK_DIR.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~kcext.output.OutputManager` and the
    ``kcext`` logger from CLI flags, and stores the configuration overrides
    in ``ctx.obj`` for the commands to resolve.
    """
    from kcext.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    )
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["keycloak_path"] = keycloak_path
    ctx.obj["work_dir"] = work_dir
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``<data_dir>/logs`` and return the file path."""
    from kcext.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``kcext`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from kcext.exceptions import KcextError
        from kcext.output import error

        if isinstance(exc, KcextError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
