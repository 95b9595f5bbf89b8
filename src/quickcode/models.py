"""Canonical Pydantic models shared across all quickcode modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`WatchConfig`, :class:`ProjectConfig`, and
    :class:`GlobalConfig`.

**API payload models** -- decoded from QuickCode API responses and push
messages:
    :class:`JobStatus`, :class:`Step`, :class:`Action`, :class:`Snapshot`,
    :class:`ModuleInfo`, and :class:`TemplateInfo`.

Payload models are deliberately lenient. The generation endpoints return
loosely-typed JSON whose fields appear progressively while a run advances,
so decoding helpers such as :meth:`Snapshot.from_payload` never raise; they
degrade to "no data yet" instead.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


DEFAULT_API_URL = "https://api.quickcode.net/"


# --- Configuration ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")


class WatchConfig(BaseModel):
    """Timing knobs for the live generation watcher."""

    idle_verify_seconds: float = Field(
        default=5.0,
        description="Silence after the last push update before the status is re-checked",
    )
    poll_interval_seconds: float = Field(
        default=2.0, description="Interval between status calls in polling mode"
    )
    connect_timeout_seconds: float = Field(
        default=10.0, description="How long to wait for the push channel to open"
    )
    reconnect_grace_seconds: float = Field(
        default=30.0,
        description="How long a dropped push channel may take to reconnect before "
        "the watcher falls back to polling",
    )


class ProjectConfig(BaseModel):
    """Per-project settings stored in :class:`GlobalConfig`.

    The secret code is intentionally absent: it lives in the credential store
    (see :mod:`quickcode.credential_store`) so that the main config file can
    be shared or printed safely.
    """

    email: Optional[str] = None


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/quickcode/config.json``.

    Loaded and saved by :func:`~quickcode.config.load_global_config` and
    :func:`~quickcode.config.save_global_config`. Fields here have the lowest
    precedence and can be overridden by project-local config, environment
    variables, or CLI flags. See :func:`~quickcode.config.resolve_config`.
    """

    api_url: str = DEFAULT_API_URL
    default_project: Optional[str] = None
    projects: dict[str, ProjectConfig] = Field(default_factory=dict)
    request: RequestConfig = Field(default_factory=RequestConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)


# --- API payloads ---


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp into an aware UTC :class:`~datetime.datetime`.

    Accepts ISO-8601 strings (with or without offset, ``Z`` included), Unix
    milliseconds as numbers or digit strings, and ``datetime`` instances.
    Naive values are assumed to be UTC. Returns ``None`` for anything that
    cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.lstrip("-").isdigit():
            return parse_timestamp(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FieldState(str, enum.Enum):
    """Presence of an optional wire field: missing, explicitly null, or set."""

    ABSENT = "absent"
    NULL = "null"
    VALUE = "value"


class JobStatus(BaseModel):
    """Lightweight run record returned by ``GetActiveProjectBySessionId``.

    ``run_id == -1`` is the server's way of saying the session is unknown or
    invalid. The record is independent of the step breakdown and acts as a
    secondary completion signal.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    INVALID_RUN_ID: ClassVar[int] = -1

    run_id: int = Field(
        default=0, validation_alias=AliasChoices("activeRunId", "runId", "run_id")
    )
    project_name: Optional[str] = Field(default=None, alias="projectName")
    is_finished: bool = Field(default=False, alias="isFinished")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")

    @field_validator("start_date", mode="before")
    @classmethod
    def _lenient_start(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @property
    def is_invalid(self) -> bool:
        """Whether the server flagged this session as invalid."""
        return self.run_id == self.INVALID_RUN_ID


class Step(BaseModel):
    """A named unit of generation work pointing at one :class:`Action`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action_id: int = Field(default=0, alias="actionId")
    description: str = "Unknown"

    @field_validator("action_id", mode="before")
    @classmethod
    def _coerce_action_id(cls, value: Any) -> int:
        if value is None:
            return 0
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> str:
        if value is None:
            return "Unknown"
        return str(value)


class Action(BaseModel):
    """Execution record of a step: completion flag and timing.

    ``start_date_state`` records whether ``startDate`` was missing, explicitly
    ``null``, or carried a value on the wire. A present value that cannot be
    parsed keeps the ``VALUE`` state with ``start_date`` set to ``None``: the
    action has started, but its elapsed time is unknown.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    is_completed: bool = Field(default=False, alias="isCompleted")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    start_date_state: FieldState = FieldState.ABSENT
    elapsed_time_ms: Optional[float] = Field(default=None, alias="elapsedTime")

    @model_validator(mode="before")
    @classmethod
    def _tag_start_date(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "startDate" not in data:
            data["start_date_state"] = FieldState.ABSENT
        elif data["startDate"] is None:
            data["start_date_state"] = FieldState.NULL
        else:
            data["start_date_state"] = FieldState.VALUE
            data["startDate"] = parse_timestamp(data["startDate"])
        return data

    @field_validator("is_completed", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("elapsed_time_ms", mode="before")
    @classmethod
    def _lenient_elapsed(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @property
    def has_started(self) -> bool:
        """Whether a non-null ``startDate`` was reported."""
        return self.start_date_state is FieldState.VALUE


def _decode_list(model: type[BaseModel], raw: Any) -> Optional[list[Any]]:
    """Decode a JSON array into *model* instances, skipping malformed items.

    Returns ``None`` when *raw* is not a list at all, which callers treat as
    "collection not available".
    """
    if not isinstance(raw, list):
        return None
    items = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            items.append(model.model_validate(item))
        except ValidationError:
            continue
    return items


class Snapshot(BaseModel):
    """Paired steps/actions state of a generation run at one point in time.

    ``None`` for either collection means the payload did not carry a usable
    array for it. An empty list means the server sent an array with no
    entries. Both cases mean "no data yet", never "nothing left to do".
    """

    steps: Optional[list[Step]] = None
    actions: Optional[list[Action]] = None

    @classmethod
    def empty(cls) -> Snapshot:
        """Snapshot with neither collection available."""
        return cls()

    @classmethod
    def from_payload(cls, steps: Any, actions: Any) -> Snapshot:
        """Build a snapshot from raw ``allSteps`` / ``allActions`` JSON values."""
        return cls(
            steps=_decode_list(Step, steps),
            actions=_decode_list(Action, actions),
        )

    @classmethod
    def from_breakdown(cls, data: Any) -> Snapshot:
        """Build a snapshot from a ``GetGenerationSteps`` response body.

        The body is expected to be an object with ``allSteps`` and
        ``allActions`` arrays. Anything else yields :meth:`empty`.
        """
        if not isinstance(data, dict):
            return cls.empty()
        return cls.from_payload(data.get("allSteps"), data.get("allActions"))

    def find_action(self, action_id: int) -> Optional[Action]:
        """Return the first action whose ``id`` equals *action_id*."""
        for action in self.actions or ():
            if action.id == action_id:
                return action
        return None


class ModuleInfo(BaseModel):
    """A module attached to a project (``get-project-modules``)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    module_name: Optional[str] = Field(default=None, alias="moduleName")
    module_template_key: Optional[str] = Field(default=None, alias="moduleTemplateKey")
    db_type_key: Optional[str] = Field(default=None, alias="dbTypeKey")
    architectural_pattern_key: Optional[str] = Field(
        default=None, alias="architecturalPatternKey"
    )


class TemplateInfo(BaseModel):
    """A module template offered by the API (``get-modules``)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
