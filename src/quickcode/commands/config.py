"""Config commands -- view and modify stored configuration.

Provides the ``quickcode config`` sub-command group. Global keys live in
:class:`~quickcode.models.GlobalConfig` (``api_url``, ``default_project``,
and the dotted ``request.*`` / ``watch.*`` settings). Project keys are
selected with ``--project``: ``email`` is stored in the global config file,
``secret_code`` in the per-project credential store and is never printed.
"""

from __future__ import annotations

from typing import Any, Optional

import typer
from pydantic import ValidationError

from quickcode.commands._shared import MASKED_SECRET
from quickcode.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from quickcode.output import error, format_response, info, print_data, success, suggest, warning


config_app = typer.Typer(no_args_is_help=True)

PROJECT_KEYS = ("email", "secret_code")
_GLOBAL_ROOTS = ("api_url", "default_project", "request", "watch")

_PROJECT_OPTION = typer.Option(
    None, "--project", "-p", help="Apply to a project's settings instead of global ones."
)


def _project_view(name: str, email: Optional[str]) -> dict[str, Any]:
    from quickcode.credential_store import CredentialStore

    return {
        "email": email,
        "secret_code": MASKED_SECRET if CredentialStore(name).exists() else None,
    }


def _split_global_key(key: str) -> list[str]:
    parts = key.split(".")
    if parts[0] not in _GLOBAL_ROOTS:
        error(f"Unknown config key: {key}")
        suggest("Use --project <name> for project keys (email, secret_code).")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return parts


def _coerce(key: str, current: Any, value: str) -> Any:
    """Coerce *value* to the type of the existing setting."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return value


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration with secrets masked.

    Example::

        quickcode config show
        quickcode config show --json
    """
    from quickcode.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    data = config.model_dump(mode="json")
    data["projects"] = {
        name: _project_view(name, project.email) for name, project in config.projects.items()
    }
    format_response(data)


@config_app.command("get")
def config_get(
    key: str = typer.Argument(help="Config key (dot notation for nested keys)."),
    project: Optional[str] = _PROJECT_OPTION,
) -> None:
    """Print a single configuration value.

    Prints ``<null>`` for unset values and ``********`` for a stored secret.

    Example::

        quickcode config get api_url
        quickcode config get watch.poll_interval_seconds
        quickcode config get email --project demo
    """
    from quickcode.config import get_project, load_global_config

    config = load_global_config()

    if project:
        if key not in PROJECT_KEYS:
            error(f"Unknown project config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        project_config = get_project(config, project)
        view = _project_view(project, project_config.email if project_config else None)
        value = view[key]
    else:
        value = config.model_dump(mode="json")
        for part in _split_global_key(key):
            if not isinstance(value, dict) or part not in value:
                error(f"Unknown config key: {key}")
                raise typer.Exit(code=EXIT_INVALID_USAGE)
            value = value[part]

    print_data(f"{key} = {'<null>' if value is None else value}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation for nested keys)."),
    value: str = typer.Argument(help="Value to set."),
    project: Optional[str] = _PROJECT_OPTION,
) -> None:
    """Set a configuration value.

    Global values are coerced to the type of the existing setting and
    validated before saving. With ``--project``, ``email`` is stored in the
    config file and ``secret_code`` in the credential store.

    Example::

        quickcode config set api_url https://api.quickcode.net/
        quickcode config set default_project demo
        quickcode config set request.timeout 60
        quickcode config set email dev@example.com --project demo
        quickcode config set secret_code 123456 --project demo
    """
    from quickcode.config import ensure_project, load_global_config, save_global_config
    from quickcode.credential_store import CredentialStore
    from quickcode.models import GlobalConfig

    config = load_global_config()

    if project:
        if key == "email":
            ensure_project(config, project).email = value
            save_global_config(config)
            success(f"Set {key} = {value} for project '{project}'")
        elif key == "secret_code":
            ensure_project(config, project)
            save_global_config(config)
            CredentialStore(project).save(value)
            success(f"Set {key} = {MASKED_SECRET} for project '{project}'")
        else:
            error(f"Unknown project config key: {key}")
            suggest(f"Project keys: {', '.join(PROJECT_KEYS)}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        return

    data = config.model_dump(mode="json")
    parts = _split_global_key(key)
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[part]

    final_key = parts[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("unset")
def config_unset(
    key: str = typer.Argument(help="Config key to reset."),
    project: Optional[str] = _PROJECT_OPTION,
) -> None:
    """Reset a value to its default (or remove a project value).

    A project left with neither an email nor a secret is removed from the
    config.

    Example::

        quickcode config unset default_project
        quickcode config unset secret_code --project demo
    """
    from quickcode.config import (
        find_project_key,
        load_global_config,
        remove_project,
        save_global_config,
    )
    from quickcode.credential_store import CredentialStore
    from quickcode.models import GlobalConfig

    config = load_global_config()

    if project:
        if key not in PROJECT_KEYS:
            error(f"Unknown project config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        stored = find_project_key(config, project)
        store = CredentialStore(project)
        if key == "email" and stored is not None:
            config.projects[stored].email = None
        elif key == "secret_code":
            store.clear()
        if stored is not None and not config.projects[stored].email and not store.exists():
            remove_project(config, stored)
        save_global_config(config)
        success(f"Unset {key} for project '{project}'")
        return

    parts = _split_global_key(key)
    defaults = GlobalConfig().model_dump(mode="json")
    data = config.model_dump(mode="json")
    target, default = data, defaults
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target, default = target[part], default[part]
    if parts[-1] not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    target[parts[-1]] = default[parts[-1]]

    save_global_config(GlobalConfig.model_validate(data))
    success(f"Unset {key}")


@config_app.command("validate")
def config_validate(
    project: Optional[str] = _PROJECT_OPTION,
) -> None:
    """Check that projects have both an email and a secret code stored.

    Exits with code 1 when any checked project is incomplete.

    Example::

        quickcode config validate
        quickcode config validate --project demo
    """
    from quickcode.config import get_project, load_global_config

    config = load_global_config()

    if project:
        project_config = get_project(config, project)
        if project_config is None:
            error(f"Project '{project}' is not configured.")
            suggest(f"Configure with: quickcode config set email <address> --project {project}")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)
        names = [project]
    else:
        names = list(config.projects)
        if not names:
            warning("No projects configured.")
            return

    failed = False
    for name in names:
        project_config = get_project(config, name)
        view = _project_view(name, project_config.email if project_config else None)
        missing = [key for key in PROJECT_KEYS if not view[key]]
        if missing:
            failed = True
            error(f"[{name}] missing: {', '.join(missing)}")
        else:
            success(f"[{name}] email: {view['email']}, secret_code: {MASKED_SECRET}")

    if failed:
        suggest("Fix with: quickcode config set <key> <value> --project <name>")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    success("All projects are properly configured.")
