"""Module commands -- manage the modules attached to a project.

Provides the ``quickcode module`` sub-command group. Commands that change a
project take ``--project`` (default: the configured default project) plus
optional ``--email`` / ``--secret-code`` overrides of the stored values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
import typer

from quickcode.commands._shared import effective_config, open_api, project_credentials
from quickcode.exceptions import QuickCodeError
from quickcode.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from quickcode.output import error, format_response, info, print_data, print_table, success, suggest, warning


module_app = typer.Typer(no_args_is_help=True)

DB_TYPES = ("mssql", "mysql", "postgresql")
PATTERNS = ("Service", "CqrsAndMediator")

_PROJECT_OPTION = typer.Option(
    None, "--project", "-p", help="Project name (defaults to the configured default project)."
)
_EMAIL_OPTION = typer.Option(None, "--email", help="Override the stored project email.")
_SECRET_OPTION = typer.Option(
    None, "--secret-code", help="Override the stored project secret code."
)
_MODULE_OPTION = typer.Option(..., "--module-name", "-m", help="Module name.")


def _choice(value: str, allowed: tuple[str, ...], label: str) -> str:
    """Match *value* case-insensitively against *allowed*, returning the canonical spelling."""
    for candidate in allowed:
        if candidate.lower() == value.lower():
            return candidate
    error(f"Invalid {label} value: {value}")
    suggest(f"Valid values: {', '.join(allowed)}")
    raise typer.Exit(code=EXIT_INVALID_USAGE)


@module_app.command("available")
def module_available(ctx: typer.Context) -> None:
    """List the module templates offered by the API.

    Example::

        quickcode module available
    """
    config = effective_config(ctx)
    with open_api(config) as api:
        templates = api.get_available_modules()
    format_response(templates)


@module_app.command("list")
def module_list(
    ctx: typer.Context,
    project: Optional[str] = _PROJECT_OPTION,
) -> None:
    """List the modules attached to a project.

    Example::

        quickcode module list --project demo
        quickcode --json module list
    """
    from quickcode.config import resolve_project_name
    from quickcode.models import ModuleInfo

    config = effective_config(ctx)
    name = resolve_project_name(config, project)
    with open_api(config) as api:
        modules = api.get_project_modules(name)

    if not isinstance(modules, list) or not modules:
        warning(f"No modules found for project '{name}'.")
        return

    rows = []
    for raw in modules:
        if not isinstance(raw, dict):
            continue
        module = ModuleInfo.model_validate(raw)
        rows.append(
            [
                module.module_name or "-",
                module.module_template_key or "-",
                module.db_type_key or "-",
                module.architectural_pattern_key or "-",
            ]
        )
    print_table(["Name", "Template", "DB Type", "Pattern"], rows, title=f"Modules of {name}")


@module_app.command("add")
def module_add(
    ctx: typer.Context,
    module_name: str = _MODULE_OPTION,
    template_key: str = typer.Option("Empty", "--template-key", "-t", help="Template to start from."),
    db_type: str = typer.Option("mssql", "--db-type", help="mssql, mysql or postgresql."),
    pattern: str = typer.Option("Service", "--pattern", help="Service or CqrsAndMediator."),
    project: Optional[str] = _PROJECT_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
    secret_code: Optional[str] = _SECRET_OPTION,
) -> None:
    """Attach a module to the project and download its DBML.

    The DBML is saved as ``<project>/<module>.dbml``. A failed download
    leaves the module added and only prints a warning.

    Example::

        quickcode module add --module-name Billing --template-key Empty --db-type postgresql
    """
    from quickcode.workspace import module_dbml_path, save_dbml

    db_type = _choice(db_type, DB_TYPES, "db-type")
    pattern = _choice(pattern, PATTERNS, "pattern")

    config = effective_config(ctx)
    credentials = project_credentials(config, project, email, secret_code)

    with open_api(config) as api:
        added = api.add_project_module(credentials, module_name, template_key, db_type, pattern)
        if not added:
            warning("Module add failed.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)
        success("Module added.")

        info(f"Downloading DBML for {module_name}...")
        try:
            dbml = api.get_module_dbml(credentials.project, module_name, template_key)
            path = save_dbml(module_dbml_path(credentials.project, module_name), dbml)
        except (QuickCodeError, httpx.HTTPError, OSError) as exc:
            warning(f"Failed to download DBML: {exc}")
            suggest(
                "Download it later with 'quickcode project get-dbmls' or 'quickcode module get-dbml'."
            )
            return
    success(f"Saved to {path}")


@module_app.command("remove")
def module_remove(
    ctx: typer.Context,
    module_name: str = _MODULE_OPTION,
    project: Optional[str] = _PROJECT_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
    secret_code: Optional[str] = _SECRET_OPTION,
) -> None:
    """Detach a module from the project.

    Example::

        quickcode module remove --module-name Billing
    """
    config = effective_config(ctx)
    credentials = project_credentials(config, project, email, secret_code)
    with open_api(config) as api:
        removed = api.remove_project_module(credentials, module_name)

    if not removed:
        warning("Module removal failed.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    success("Module removed.")


@module_app.command("get-dbml")
def module_get_dbml(
    ctx: typer.Context,
    module_name: str = _MODULE_OPTION,
    template_key: str = typer.Option(..., "--template-key", "-t", help="The module's template key."),
    project: Optional[str] = _PROJECT_OPTION,
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="File to save the DBML to (default: stdout)."
    ),
) -> None:
    """Download one module's DBML.

    Example::

        quickcode module get-dbml --module-name Billing --template-key Empty
        quickcode module get-dbml -m Billing -t Empty -o billing.dbml
    """
    from quickcode.config import resolve_project_name
    from quickcode.workspace import save_dbml

    config = effective_config(ctx)
    name = resolve_project_name(config, project)
    with open_api(config) as api:
        dbml = api.get_module_dbml(name, module_name, template_key)

    if output is None:
        print_data(dbml)
        return
    path = save_dbml(output, dbml)
    success(f"DBML saved to {path.resolve()}")


@module_app.command("save-dbml")
def module_save_dbml(
    ctx: typer.Context,
    module_name: str = _MODULE_OPTION,
    template_key: str = typer.Option(..., "--template-key", "-t", help="The module's template key."),
    file: Optional[Path] = typer.Option(None, "--file", help="Path to a DBML file."),
    dbml: Optional[str] = typer.Option(None, "--dbml", help="Inline DBML content."),
    db_type: str = typer.Option("mssql", "--db-type", help="mssql, mysql or postgresql."),
    project: Optional[str] = _PROJECT_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
    secret_code: Optional[str] = _SECRET_OPTION,
) -> None:
    """Upload DBML content for a module.

    ``--dbml`` wins over ``--file`` when both are given.

    Example::

        quickcode module save-dbml -m Billing -t Empty --file demo/Billing.dbml
    """
    db_type = _choice(db_type, DB_TYPES, "db-type")

    content = dbml
    if content is None and file is not None:
        try:
            content = file.read_text(encoding="utf-8")
        except OSError as exc:
            error(f"Cannot read {file}: {exc}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    if not content or not content.strip():
        error("Provide DBML content via --dbml or --file.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    config = effective_config(ctx)
    credentials = project_credentials(config, project, email, secret_code)
    with open_api(config) as api:
        saved = api.save_module_dbml(credentials, module_name, template_key, content, db_type)

    if not saved:
        warning("DBML save failed.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    success("DBML saved.")
