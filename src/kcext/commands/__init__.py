"""Built-in CLI sub-commands for kcext.

* :mod:`~kcext.commands.extensions` -- ``install``, ``uninstall``, and
  ``list``, registered directly on the root app.
* :mod:`~kcext.commands.config` -- the ``config`` group for viewing and
  editing the user configuration file.
"""
