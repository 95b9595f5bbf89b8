"""Built-in CLI sub-commands for quickcode.

This package groups all Typer sub-command modules that form the CLI's
command tree:

* :mod:`~quickcode.commands.config` -- view and modify stored settings and
  project credentials.
* :mod:`~quickcode.commands.project` -- create projects and sync their DBML
  files with the local project folder.
* :mod:`~quickcode.commands.module` -- add, remove, and inspect project
  modules.
* :mod:`~quickcode.commands.generate` -- start generation runs and follow
  their progress.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands (``generate``, ``watch``, ``status``) are plain callbacks
registered directly on the root app.
"""
