"""Typed wrappers around the QuickCode REST endpoints.

:class:`QuickCodeApi` maps one method to each endpoint the CLI uses. It owns
no connection state of its own: every call goes through a
:class:`~quickcode.client.sync_client.SyncClient` that the caller keeps open
for the duration of a command.

Authenticated endpoints take a :class:`ProjectCredentials` triple, resolved
by :func:`~quickcode.config.resolve_project_credentials`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from quickcode.client.sync_client import SyncClient


@dataclass(frozen=True)
class ProjectCredentials:
    """The ``(project, email, secret_code)`` triple sent with write calls."""

    project: str
    email: str
    secret_code: str

    def payload(self) -> dict[str, str]:
        """JSON fields shared by every authenticated request body."""
        return {
            "projectName": self.project,
            "projectEmail": self.email,
            "projectSecretCode": self.secret_code,
        }


def _segment(value: str) -> str:
    """Percent-encode a single URL path segment."""
    return quote(value, safe="@")


def as_bool(value: Any) -> bool:
    """Interpret a boolean API response.

    The API answers ``true`` / ``false`` as JSON, but an empty body is
    treated as ``False`` and a ``"true"`` string is accepted too.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


class QuickCodeApi:
    """QuickCode API endpoints.

    Args:
        client: An open :class:`SyncClient` (entered as a context manager).
    """

    def __init__(self, client: SyncClient) -> None:
        self._client = client

    @property
    def client(self) -> SyncClient:
        """The underlying HTTP client."""
        return self._client

    # ------------------------------------------------------------------ #
    # Projects
    # ------------------------------------------------------------------ #

    def create_project(self, project: str, email: str) -> bool:
        """Create a project (or request its secret code by email)."""
        return as_bool(
            self._client.post_json(
                "api/GenerateSite/CreateProject",
                {"projectName": project, "projectEmail": email},
            )
        )

    def check_project_name(self, project: str) -> bool:
        """Whether a project with this name exists."""
        return as_bool(
            self._client.get_json(f"api/Dbml/check-project-name/{_segment(project)}")
        )

    def check_secret_code(self, credentials: ProjectCredentials) -> bool:
        """Whether the email/secret pair is valid for the project."""
        return as_bool(
            self._client.get_json(
                "api/Dbml/check-secret-code/"
                f"{_segment(credentials.project)}/{_segment(credentials.email)}/"
                f"{_segment(credentials.secret_code)}"
            )
        )

    def forgot_secret_code(self, project: str, email: str) -> bool:
        """Ask the server to email the project's secret code again."""
        return as_bool(
            self._client.post_json(
                "api/GenerateSite/ForgotProjectSecret",
                {"projectName": project, "projectEmail": email},
            )
        )

    # ------------------------------------------------------------------ #
    # Modules
    # ------------------------------------------------------------------ #

    def get_available_modules(self) -> Any:
        """List module templates offered by the API (raw JSON)."""
        return self._client.get_json("api/Dbml/get-modules")

    def get_project_modules(self, project: str) -> Any:
        """List the modules attached to *project* (raw JSON)."""
        return self._client.get_json(f"api/Dbml/get-project-modules/{_segment(project)}")

    def get_module_dbml(self, project: str, module_name: str, template_key: str) -> str:
        """Download a module's DBML source."""
        return self._client.get_text(
            "api/Dbml/get-module-dbml/"
            f"{_segment(project)}/{_segment(module_name)}/{_segment(template_key)}"
        )

    def add_project_module(
        self,
        credentials: ProjectCredentials,
        module_name: str,
        template_key: str,
        db_type: str,
        pattern: str,
    ) -> bool:
        """Attach a new module to the project."""
        payload = credentials.payload()
        payload.update(
            {
                "moduleName": module_name,
                "moduleTemplateKey": template_key,
                "dbTypeKey": db_type,
                "architecturalPatternKey": pattern,
            }
        )
        return as_bool(self._client.post_json("api/Dbml/add-project-module", payload))

    def remove_project_module(self, credentials: ProjectCredentials, module_name: str) -> bool:
        """Detach a module from the project."""
        payload = credentials.payload()
        payload["moduleName"] = module_name
        return as_bool(self._client.post_json("api/Dbml/remove-project-module", payload))

    def save_module_dbml(
        self,
        credentials: ProjectCredentials,
        module_name: str,
        template_key: str,
        dbml: str,
        db_type: str,
    ) -> bool:
        """Upload DBML source for a module."""
        payload = credentials.payload()
        payload.update(
            {
                "moduleName": module_name,
                "moduleTemplateKey": template_key,
                "dbml": dbml,
                "dbTypeKey": db_type,
            }
        )
        return as_bool(self._client.post_json("api/Dbml/save-module-dbml", payload))

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    def generate_project_solution(self, credentials: ProjectCredentials, session_id: str) -> bool:
        """Start a generation run tagged with *session_id*."""
        payload: dict[str, Any] = credentials.payload()
        payload["sessionId"] = session_id
        return as_bool(self._client.post_json("api/GenerateSite/GenerateProjectSolution", payload))

    def get_active_project(self, session_id: str) -> Optional[Any]:
        """Raw run record for *session_id* (``None`` for an empty body)."""
        return self._client.get_json(
            "api/GenerateSite/GetActiveProjectBySessionId",
            params={"sessionId": session_id},
        )

    def get_generation_steps(self) -> Any:
        """Raw ``allSteps`` / ``allActions`` breakdown of the current run."""
        return self._client.get_json("api/GenerateSite/GetGenerationSteps")
