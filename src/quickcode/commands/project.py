"""Project commands -- create projects and sync their DBML files.

Provides the ``quickcode project`` sub-command group. Every command takes
``--name`` and falls back to the configured default project when it is
omitted.

Typical workflow::

    quickcode project create --name demo --email dev@example.com
    quickcode config set secret_code <code> --project demo
    quickcode project get-dbmls --name demo
    # edit demo/*.dbml
    quickcode project update-dbmls --name demo
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
import typer

from quickcode.commands._shared import effective_config, open_api, project_credentials
from quickcode.exceptions import QuickCodeError
from quickcode.exit_codes import EXIT_AUTH_FAILURE, EXIT_GENERIC_FAILURE, EXIT_NOT_FOUND
from quickcode.output import debug, error, info, success, suggest, warning


project_app = typer.Typer(no_args_is_help=True)

_DOWNLOAD_ERRORS = (QuickCodeError, httpx.HTTPError, OSError)
_RULE = "-" * 60

_NAME_OPTION = typer.Option(
    None, "--name", "-n", help="Project name (defaults to the configured default project)."
)
_EMAIL_OPTION = typer.Option(None, "--email", help="Override the stored project email.")
_SECRET_OPTION = typer.Option(
    None, "--secret-code", help="Override the stored project secret code."
)


def _field(item: Any, key: str) -> Optional[str]:
    """Non-blank string field of a JSON object, else ``None``."""
    if not isinstance(item, dict):
        return None
    value = item.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


@project_app.command("create")
def project_create(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
    email: Optional[str] = typer.Option(
        None, "--email", help="Email address that receives the secret code."
    ),
) -> None:
    """Create a project, or request its secret code by email.

    When the server declines, the project name is checked: an existing
    project is reported as such. On success the email is stored for the
    project unless one is already configured.

    Example::

        quickcode project create --name demo --email dev@example.com
    """
    from quickcode.config import (
        ensure_project,
        get_project,
        load_global_config,
        resolve_project_name,
        save_global_config,
    )

    config = effective_config(ctx)
    project = resolve_project_name(config, name)
    stored = get_project(config, project)
    address = email or (stored.email if stored else None)
    if not address:
        error("Project email is required. Pass --email <address>.")
        raise typer.Exit(code=2)

    with open_api(config) as api:
        if not api.create_project(project, address):
            if api.check_project_name(project):
                success(f"Project '{project}' exists.")
                return
            warning("Project creation request failed.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    success(f"Project '{project}' created/request submitted. Check email for secret code.")

    persisted = load_global_config()
    entry = get_project(persisted, project)
    if entry is None or not entry.email:
        ensure_project(persisted, project).email = address
        save_global_config(persisted)
        debug(f"Stored email for project '{project}' in config.")


@project_app.command("check")
def project_check(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
) -> None:
    """Check whether a project exists on the server.

    Exits with code 4 when it does not.

    Example::

        quickcode project check --name demo
    """
    from quickcode.config import resolve_project_name

    config = effective_config(ctx)
    project = resolve_project_name(config, name)
    with open_api(config) as api:
        exists = api.check_project_name(project)

    if not exists:
        error(f"Project '{project}' not found.")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    success(f"Project '{project}' exists.")


@project_app.command("forgot-secret")
def project_forgot_secret(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
) -> None:
    """Ask the server to email the project's secret code again.

    Example::

        quickcode project forgot-secret --name demo
    """
    from quickcode.config import get_project, resolve_project_name

    config = effective_config(ctx)
    project = resolve_project_name(config, name)
    stored = get_project(config, project)
    address = email or (stored.email if stored else None)
    if not address:
        error(f"Email not configured for '{project}'.")
        suggest(f"Set it via 'quickcode config set email <address> --project {project}' or pass --email.")
        raise typer.Exit(code=2)

    with open_api(config) as api:
        sent = api.forgot_secret_code(project, address)

    if not sent:
        warning("Could not send secret code reminder.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    success("Secret code reminder sent.")


@project_app.command("verify-secret")
def project_verify_secret(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
    secret_code: Optional[str] = _SECRET_OPTION,
) -> None:
    """Verify the project's email and secret code combination.

    Exits with code 3 when the server rejects the pair.

    Example::

        quickcode project verify-secret --name demo
    """
    config = effective_config(ctx)
    credentials = project_credentials(config, name, email, secret_code)
    with open_api(config) as api:
        valid = api.check_secret_code(credentials)

    if not valid:
        error("Secret code is invalid.")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    success("Secret code is valid.")


@project_app.command("validate")
def project_validate(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
) -> None:
    """Check that the project has an email and secret code stored locally.

    Example::

        quickcode project validate --name demo
    """
    from quickcode.commands.config import config_validate
    from quickcode.config import resolve_project_name

    config_validate(project=resolve_project_name(effective_config(ctx), name))


@project_app.command("get-dbmls")
def project_get_dbmls(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
    secret_code: Optional[str] = _SECRET_OPTION,
) -> None:
    """Download the DBML of every project module and every template.

    Project modules are saved as ``<project>/<module>.dbml`` and templates
    as ``<project>/templates/<template-key>.dbml``. The QuickCode README is
    downloaded into the project folder as well. A module that fails to
    download is counted and skipped.

    Example::

        quickcode project get-dbmls --name demo
    """
    from quickcode.workspace import (
        download_readme,
        ensure_project_dirs,
        module_dbml_path,
        save_dbml,
        template_dbml_path,
    )

    config = effective_config(ctx)
    credentials = project_credentials(config, name, email, secret_code)
    project = credentials.project

    root, templates = ensure_project_dirs(project)
    download_readme(root, timeout=config.request.timeout)

    with open_api(config) as api:
        info(f"Fetching modules for project '{project}'...")
        modules = api.get_project_modules(project)
        if not isinstance(modules, list):
            error("Failed to fetch modules or no modules found.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)
        if not modules:
            warning("No modules found for this project.")
            return

        info(f"Found {len(modules)} module(s). Downloading project DBMLs...")
        info(_RULE)
        downloaded = failed = 0
        for module in modules:
            module_name = _field(module, "moduleName")
            template_key = _field(module, "moduleTemplateKey")
            if module_name is None or template_key is None:
                warning("Skipping module with missing name or template key.")
                failed += 1
                continue
            try:
                dbml = api.get_module_dbml(project, module_name, template_key)
                path = save_dbml(module_dbml_path(project, module_name), dbml)
            except _DOWNLOAD_ERRORS as exc:
                error(f"{module_name}: {exc}")
                failed += 1
                continue
            success(f"{module_name}: saved to {path.name}")
            downloaded += 1
        info(_RULE)
        success(f"Project modules: {downloaded} downloaded, {failed} failed.")

        info("Fetching all template modules...")
        available = api.get_available_modules()
        if not isinstance(available, list):
            warning("Failed to fetch template modules.")
        elif available:
            info(f"Found {len(available)} template module(s). Downloading to templates folder...")
            info(_RULE)
            downloaded = failed = 0
            for template in available:
                key = _field(template, "key")
                template_name = _field(template, "name")
                if key is None or template_name is None:
                    warning("Skipping template with missing key or name.")
                    failed += 1
                    continue
                try:
                    dbml = api.get_module_dbml(project, template_name, key)
                    path = save_dbml(template_dbml_path(project, key), dbml)
                except _DOWNLOAD_ERRORS as exc:
                    error(f"Template {template_name}: {exc}")
                    failed += 1
                    continue
                success(f"Template {template_name}: saved to templates/{path.name}")
                downloaded += 1
            info(_RULE)
            success(f"Template modules: {downloaded} downloaded, {failed} failed.")

    info(f"Project files saved to: {root}")
    info(f"Template files saved to: {templates}")


@project_app.command("update-dbmls")
def project_update_dbmls(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
    email: Optional[str] = _EMAIL_OPTION,
    secret_code: Optional[str] = _SECRET_OPTION,
) -> None:
    """Upload the local project DBML files back to the server.

    Each top-level ``<module>.dbml`` file is matched to the project module
    of the same name. Files without a matching module, or whose module lacks
    a template key or database type, are skipped. Exits with code 1 when any
    file could not be uploaded.

    Example::

        quickcode project update-dbmls --name demo
    """
    from quickcode.workspace import list_module_dbmls, project_dir

    config = effective_config(ctx)
    credentials = project_credentials(config, name, email, secret_code)
    project = credentials.project

    root = project_dir(project)
    if not root.is_dir():
        error(f"Project directory not found: {root}")
        suggest(f"Run 'quickcode project get-dbmls --name {project}' first to download DBMLs.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    files = list_module_dbmls(project)
    if not files:
        warning(f"No DBML files found in {root}")
        return

    with open_api(config) as api:
        info(f"Fetching module information for project '{project}'...")
        modules = api.get_project_modules(project)
        if not isinstance(modules, list):
            error("Failed to fetch modules or no modules found.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)

        by_name = {}
        for module in modules:
            module_name = _field(module, "moduleName")
            if module_name is not None:
                by_name[module_name] = module

        info(f"Found {len(files)} DBML file(s). Uploading to API...")
        info(_RULE)
        uploaded = failed = 0
        for path in files:
            module = by_name.get(path.stem)
            if module is None:
                warning(f"Skipping {path.name}: Module '{path.stem}' not found in project.")
                failed += 1
                continue
            template_key = _field(module, "moduleTemplateKey")
            db_type = _field(module, "dbTypeKey")
            if template_key is None or db_type is None:
                warning(f"Skipping {path.name}: Missing module information.")
                failed += 1
                continue
            try:
                saved = api.save_module_dbml(
                    credentials,
                    path.stem,
                    template_key,
                    path.read_text(encoding="utf-8"),
                    db_type,
                )
            except _DOWNLOAD_ERRORS as exc:
                error(f"{path.name}: {exc}")
                failed += 1
                continue
            if not saved:
                error(f"{path.name}: API returned failure")
                failed += 1
                continue
            success(f"{path.name}: uploaded")
            uploaded += 1

    info(_RULE)
    success(f"Successfully uploaded {uploaded} DBML file(s).")
    if failed:
        warning(f"Failed to upload {failed} file(s).")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)


@project_app.command("remove")
def project_remove(
    ctx: typer.Context,
    name: Optional[str] = _NAME_OPTION,
) -> None:
    """Forget a project locally: stored settings, secret code, and DBML folder.

    Nothing is deleted on the server. Asks for confirmation unless
    ``--force`` is given.

    Example::

        quickcode --force project remove --name demo
    """
    from quickcode.commands._shared import ctx_option
    from quickcode.config import (
        load_global_config,
        remove_project,
        resolve_project_name,
        save_global_config,
    )
    from quickcode.credential_store import CredentialStore
    from quickcode.workspace import project_dir, remove_project_dir

    project = resolve_project_name(effective_config(ctx), name)

    if not ctx_option(ctx, "force", False):
        typer.confirm(
            f"Remove stored settings and the local DBML folder of '{project}'?", abort=True
        )

    config = load_global_config()
    if remove_project(config, project):
        save_global_config(config)
        success(f"Removed stored settings for project '{project}'.")
    else:
        warning(f"Project '{project}' not found in config.")

    if CredentialStore(project).clear():
        success(f"Removed stored secret code for project '{project}'.")

    try:
        removed = remove_project_dir(project)
    except OSError as exc:
        warning(f"Could not delete folder '{project_dir(project)}': {exc}")
        return
    if removed is None:
        info(f"No local DBML folder found at {project_dir(project)}")
    else:
        success(f"Deleted DBML folder: {removed}")
