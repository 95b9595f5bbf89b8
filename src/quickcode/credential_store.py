"""Persistent secret-code store scoped per project.

Stores each project's secret code in
``~/.local/share/quickcode/credentials/<project>.json`` (XDG) or the
platform-equivalent directory. Files are written atomically via
:func:`tempfile.NamedTemporaryFile` and ``os.replace`` with ``0o600``
permissions so that secrets are never world-readable, even momentarily.

Project names are case-insensitive throughout the CLI, so the file name is
derived from the lower-cased project name.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from quickcode.config import get_data_dir


class CredentialEntry(BaseModel):
    """A stored project secret.

    Attributes:
        project: Project name as the user typed it when storing the secret.
        secret_code: The secret code issued by QuickCode for the project.
        updated_at: UTC time the secret was last written.
    """

    project: str
    secret_code: str = Field(description="Project secret code")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _credentials_dir() -> Path:
    """Return the credentials directory, creating it if needed."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


class CredentialStore:
    """Read/write the secret code of a single project.

    All writes are atomic: content is written to a temporary file in the
    same directory, fsynced, then renamed into place.

    Args:
        project: The project name used to derive the file name.

    Example::

        store = CredentialStore("demo")
        store.save("123456")
        assert store.load().secret_code == "123456"
    """

    def __init__(self, project: str) -> None:
        self._project = project
        self._path = _credentials_dir() / f"{project.lower()}.json"

    @property
    def path(self) -> Path:
        """The filesystem path to this project's credential file."""
        return self._path

    def save(self, secret_code: str) -> CredentialEntry:
        """Persist *secret_code* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written.
        """
        entry = CredentialEntry(project=self._project, secret_code=secret_code)
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"

        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd = None
        tmp_path: Optional[str] = None
        try:
            fd = tempfile.NamedTemporaryFile(
                mode="w",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            )
            tmp_path = fd.name
            # Restrict permissions before any secret hits the disk
            os.chmod(tmp_path, 0o600)
            fd.write(text)
            fd.flush()
            os.fsync(fd.fileno())
            fd.close()
            fd = None
            os.replace(tmp_path, self._path)
        except BaseException:
            if fd is not None:
                fd.close()
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise
        return entry

    def load(self) -> Optional[CredentialEntry]:
        """Load the stored entry, or ``None`` if missing or unreadable."""
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return CredentialEntry.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def exists(self) -> bool:
        """Whether a readable secret is stored for the project."""
        return self.load() is not None

    def clear(self) -> bool:
        """Delete the stored secret. Returns ``False`` if there was none."""
        if self._path.is_file():
            self._path.unlink()
            return True
        return False
