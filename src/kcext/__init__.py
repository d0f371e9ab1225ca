"""kcext -- install, list, and uninstall Keycloak extensions.

This package drives a fixed install pipeline for a Keycloak provider: clone
the extension's source repository, build it with Maven, copy the single
produced artifact into ``<KEYCLOAK_PATH>/providers``, then rebuild and
restart the server.

Typical workflow::

    export KEYCLOAK_PATH=/opt/keycloak
    kcext install --url=https://github.com/acme/keycloak-otp-extension
    kcext list
    kcext uninstall --file=keycloak-otp-extension-1.0.jar

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for configuration and pipeline state.
    config: XDG-aware configuration and precedence resolution.
    pipeline: The install pipeline state machine.
    stages: External-process stage runner and command builders.
    locator: Packaging detection and artifact resolution.
    copier: Durable artifact copy into the plugin directory.
    manager: Listing and removal of installed extensions.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
