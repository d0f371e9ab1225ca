"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~kcext.exceptions.KcextError` subclass, so shell
wrappers can tell a failed Maven build from a missing ``KEYCLOAK_PATH``
without parsing stderr.

Example::

    $ kcext install --url=https://github.com/acme/broken-extension
    $ echo $?
    5   # EXIT_STAGE_FAILURE -- one of clone/build/copy/rebuild/restart failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Unknown command, invalid arguments, or missing required options."""

EXIT_CONFIG_ERROR = 3
"""Configuration is missing or invalid (e.g. ``KEYCLOAK_PATH`` not set)."""

EXIT_NOT_FOUND = 4
"""The requested extension or directory does not exist."""

EXIT_STAGE_FAILURE = 5
"""An external pipeline stage (clone, build, copy, rebuild, restart) failed."""

EXIT_ARTIFACT_ERROR = 6
"""The packaging type or the build artifact could not be determined."""
