"""Local DBML workspace layout.

A project's DBML files live in a folder named after the project::

    <project>/
        README.md
        <module>.dbml            one file per project module
        templates/
            <template-key>.dbml  one file per available template

The folder is ``./<project>`` unless the current directory itself is
already named after the project (compared case-insensitively), in which case
the current directory is used.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

import httpx

from quickcode.output import get_output

README_URL = "https://raw.githubusercontent.com/QuickCodeNet/quickcode.cli/main/README.md"
TEMPLATES_DIRNAME = "templates"
DBML_SUFFIX = ".dbml"


def project_dir(project: str, cwd: Optional[Path] = None) -> Path:
    """Return the local folder for *project* without creating it."""
    base = cwd or Path.cwd()
    if base.name.lower() == project.lower():
        return base
    return base / project


def templates_dir(project: str, cwd: Optional[Path] = None) -> Path:
    """Return the ``templates/`` folder inside the project folder."""
    return project_dir(project, cwd) / TEMPLATES_DIRNAME


def ensure_project_dirs(project: str, cwd: Optional[Path] = None) -> tuple[Path, Path]:
    """Create the project and templates folders if missing.

    Returns:
        ``(project_dir, templates_dir)``.
    """
    output = get_output()
    root = project_dir(project, cwd)
    if root.is_dir():
        output.info(f"Using existing directory: {root}")
    else:
        root.mkdir(parents=True)
        output.info(f"Created directory: {root}")

    templates = root / TEMPLATES_DIRNAME
    if not templates.is_dir():
        templates.mkdir(parents=True)
        output.debug(f"Created templates directory: {templates}")
    return root, templates


def module_dbml_path(project: str, module_name: str, cwd: Optional[Path] = None) -> Path:
    """Path of the DBML file for a project module."""
    return project_dir(project, cwd) / f"{module_name}{DBML_SUFFIX}"


def template_dbml_path(project: str, template_key: str, cwd: Optional[Path] = None) -> Path:
    """Path of the DBML file for a template, named by template key."""
    return templates_dir(project, cwd) / f"{template_key}{DBML_SUFFIX}"


def save_dbml(path: Path, dbml: str) -> Path:
    """Write DBML text to *path*, creating parent folders as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dbml, encoding="utf-8")
    return path


def list_module_dbmls(project: str, cwd: Optional[Path] = None) -> list[Path]:
    """Top-level ``*.dbml`` files of the project folder, sorted by name.

    Template files under ``templates/`` are not included.
    """
    root = project_dir(project, cwd)
    if not root.is_dir():
        return []
    return sorted(p for p in root.glob(f"*{DBML_SUFFIX}") if p.is_file())


def remove_project_dir(project: str, cwd: Optional[Path] = None) -> Optional[Path]:
    """Delete the project folder recursively.

    Returns:
        The deleted path, or ``None`` if there was no folder.
    """
    root = project_dir(project, cwd)
    if not root.is_dir():
        return None
    shutil.rmtree(root)
    return root


def download_readme(target_dir: Path, timeout: float = 30.0) -> Optional[Path]:
    """Fetch the QuickCode README into *target_dir*. Best effort.

    Failures are reported as warnings and never raised.

    Returns:
        The written path, or ``None`` when the download failed.
    """
    output = get_output()
    path = target_dir / "README.md"
    try:
        response = httpx.get(README_URL, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
        path.write_text(response.text, encoding="utf-8")
    except (httpx.HTTPError, OSError) as exc:
        output.warning(f"Could not download README.md: {exc}")
        return None
    output.info(f"Saved README.md to {path}")
    return path
