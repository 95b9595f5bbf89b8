"""The two read-only calls the watcher makes against the API."""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from quickcode.client.api import QuickCodeApi
from quickcode.exceptions import NotFoundError
from quickcode.models import JobStatus, Snapshot


class StatusClient:
    """Fetch run status and step breakdowns for the watcher.

    Transport and server errors propagate as
    :class:`~quickcode.exceptions.QuickCodeError` subclasses; callers decide
    whether to retry. Payload-shape problems never raise.
    """

    def __init__(self, api: QuickCodeApi) -> None:
        self._api = api

    def get_job_status(self, session_id: str) -> Optional[JobStatus]:
        """Return the run record for *session_id*, or ``None`` if the server has none."""
        try:
            data = self._api.get_active_project(session_id)
        except NotFoundError:
            return None
        if not isinstance(data, dict) or not data:
            return None
        try:
            return JobStatus.model_validate(data)
        except ValidationError:
            return None

    def get_step_breakdown(self) -> Snapshot:
        """Return the current steps/actions, or an empty snapshot for odd payloads."""
        return Snapshot.from_breakdown(self._api.get_generation_steps())
