"""Helpers shared by the command modules.

Commands read global flags from ``ctx.obj`` (populated by
:func:`~quickcode.app.main_callback`), resolve the effective configuration,
and open a :class:`~quickcode.client.api.QuickCodeApi` for the duration of
the command.
"""

from __future__ import annotations

import contextlib
from typing import Any, Iterator, Optional

import typer

from quickcode.client.api import ProjectCredentials, QuickCodeApi
from quickcode.client.sync_client import SyncClient
from quickcode.config import resolve_config, resolve_project_credentials
from quickcode.models import GlobalConfig

MASKED_SECRET = "********"


def ctx_option(ctx: typer.Context, name: str, default: Any = None) -> Any:
    """Read a global flag stored by the root callback."""
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    return obj.get(name, default)


def effective_config(ctx: typer.Context, project: Optional[str] = None) -> GlobalConfig:
    """Resolve config honouring ``--api-url`` and an explicit project name."""
    return resolve_config(cli_api_url=ctx_option(ctx, "api_url"), cli_project=project)


def project_credentials(
    config: GlobalConfig,
    project: Optional[str],
    email: Optional[str] = None,
    secret: Optional[str] = None,
) -> ProjectCredentials:
    """Resolve the credential triple for an authenticated call."""
    name, resolved_email, resolved_secret = resolve_project_credentials(
        config, project, email, secret
    )
    return ProjectCredentials(project=name, email=resolved_email, secret_code=resolved_secret)


@contextlib.contextmanager
def open_api(config: GlobalConfig) -> Iterator[QuickCodeApi]:
    """Open an HTTP client against ``config.api_url`` for one command."""
    with SyncClient(config.api_url, config.request) as client:
        yield QuickCodeApi(client)
