"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for quickcode:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.quickcode/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~quickcode.models.GlobalConfig`
  JSON file storing the API URL, per-project emails, and request/watch
  settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.
* **Project credentials** -- :func:`resolve_project_credentials` combines
  CLI overrides, stored emails, and the credential store into the
  ``(project, email, secret)`` triple every authenticated call needs.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from quickcode.exceptions import ConfigError
from quickcode.models import GlobalConfig, ProjectConfig

_APP_NAME = "quickcode"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "quickcode.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/quickcode/`` (default ``~/.config/quickcode/``).
    On macOS/Windows: ``~/.quickcode/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs, credentials), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/quickcode/`` (default ``~/.local/share/quickcode/``).
    On macOS/Windows: ``~/.quickcode/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~quickcode.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Projects ---


def find_project_key(config: GlobalConfig, name: str) -> Optional[str]:
    """Return the stored spelling of project *name*, matched case-insensitively."""
    if name in config.projects:
        return name
    lowered = name.lower()
    for key in config.projects:
        if key.lower() == lowered:
            return key
    return None


def get_project(config: GlobalConfig, name: str) -> Optional[ProjectConfig]:
    """Look up a project's settings by case-insensitive name."""
    key = find_project_key(config, name)
    return config.projects[key] if key is not None else None


def ensure_project(config: GlobalConfig, name: str) -> ProjectConfig:
    """Return the project's settings, creating an empty entry if needed."""
    key = find_project_key(config, name)
    if key is None:
        config.projects[name] = ProjectConfig()
        key = name
    return config.projects[key]


def remove_project(config: GlobalConfig, name: str) -> bool:
    """Drop a project entry. Returns ``False`` if it was not configured."""
    key = find_project_key(config, name)
    if key is None:
        return False
    del config.projects[key]
    if config.default_project and config.default_project.lower() == name.lower():
        config.default_project = None
    return True


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./quickcode.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. It typically pins ``default_project`` (and
    occasionally ``api_url``) for a checked-out repository.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def resolve_config(
    cli_api_url: Optional[str] = None,
    cli_project: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_api_url``, ``cli_project``)
        2. Environment variables (``QUICKCODE_API_URL``, ``QUICKCODE_PROJECT``)
        3. Project config (``./quickcode.json``)
        4. User config (``~/.config/quickcode/config.json``)
        5. Defaults

    The returned object is a working copy; saving it persists the overrides,
    so commands that write config load it with :func:`load_global_config`.
    """
    config = load_global_config()

    project = load_project_config()
    if project is not None:
        if project.get("api_url"):
            config.api_url = str(project["api_url"])
        if project.get("default_project"):
            config.default_project = str(project["default_project"])

    env_url = os.environ.get("QUICKCODE_API_URL")
    if env_url:
        config.api_url = env_url
    env_project = os.environ.get("QUICKCODE_PROJECT")
    if env_project:
        config.default_project = env_project

    if cli_api_url:
        config.api_url = cli_api_url
    if cli_project:
        config.default_project = cli_project

    return config


def resolve_project_name(config: GlobalConfig, project: Optional[str]) -> str:
    """Return *project*, falling back to the configured default project.

    Raises:
        ConfigError: If neither is set.
    """
    name = project or config.default_project
    if not name or not name.strip():
        raise ConfigError(
            "Project name is required. Pass it as an argument or --project <name>, "
            "or set a default via 'quickcode config set default_project <name>'."
        )
    return name.strip()


def resolve_project_credentials(
    config: GlobalConfig,
    project: Optional[str],
    email: Optional[str] = None,
    secret: Optional[str] = None,
) -> tuple[str, str, str]:
    """Resolve the ``(project, email, secret_code)`` triple for API calls.

    Explicit *email* / *secret* arguments win over stored values. The email
    comes from the project's entry in the global config, the secret code
    from the :class:`~quickcode.credential_store.CredentialStore`.

    Raises:
        ConfigError: If the project name, email, or secret code is missing.
    """
    from quickcode.credential_store import CredentialStore

    name = resolve_project_name(config, project)
    project_config = get_project(config, name)

    resolved_email = email or (project_config.email if project_config else None)
    if not resolved_email or not resolved_email.strip():
        raise ConfigError(
            "Project email is required. Pass --email or set it via "
            f"'quickcode config set email <address> --project {name}'."
        )

    resolved_secret = secret
    if not resolved_secret:
        entry = CredentialStore(name).load()
        resolved_secret = entry.secret_code if entry else None
    if not resolved_secret or not resolved_secret.strip():
        raise ConfigError(
            "Project secret code is required. Pass --secret-code or set it via "
            f"'quickcode config set secret_code <code> --project {name}'."
        )

    return name, resolved_email.strip(), resolved_secret.strip()
