"""Generation commands -- start a run and follow its progress.

Registered as root commands by :mod:`quickcode.app`:

- ``quickcode generate [PROJECT]`` starts code generation and, unless
  ``--no-watch`` is given, follows it live.
- ``quickcode watch SESSION_ID`` attaches to a run started elsewhere.
- ``quickcode status --session-id ID`` prints the run record once.
"""

from __future__ import annotations

import secrets
from typing import Optional

import typer

from quickcode.client.api import QuickCodeApi
from quickcode.commands._shared import ctx_option, effective_config, open_api, project_credentials
from quickcode.exit_codes import EXIT_GENERIC_FAILURE
from quickcode.models import GlobalConfig
from quickcode.output import format_response, get_output, info, print_data, success, warning


def new_session_id() -> str:
    """Random 32-character hex session id."""
    return secrets.token_hex(16)


def _watch_session(
    ctx: typer.Context, config: GlobalConfig, api: QuickCodeApi, session_id: str
) -> None:
    """Run the live watcher for *session_id* and exit with its outcome."""
    from quickcode.watch import (
        CancellationToken,
        GenerationWatcher,
        StatusClient,
        cancel_on_interrupt,
    )

    watcher = GenerationWatcher(
        config.api_url,
        session_id,
        StatusClient(api),
        config=config.watch,
        verify_ssl=config.request.verify_ssl,
        verbose=bool(ctx_option(ctx, "verbose", False)),
    )
    with cancel_on_interrupt(CancellationToken()) as token:
        outcome = watcher.run(token)
    if outcome.exit_code:
        raise typer.Exit(code=outcome.exit_code)


def generate_command(
    ctx: typer.Context,
    project: Optional[str] = typer.Argument(
        None, help="Project name (defaults to the configured default project)."
    ),
    email: Optional[str] = typer.Option(None, "--email", help="Override the stored project email."),
    secret_code: Optional[str] = typer.Option(
        None, "--secret-code", help="Override the stored project secret code."
    ),
    session_id: Optional[str] = typer.Option(
        None, "--session-id", help="Custom session id (random by default)."
    ),
    watch: bool = typer.Option(
        True, "--watch/--no-watch", help="Follow generation progress live."
    ),
) -> None:
    """Trigger code generation for a project.

    By default the command then follows the run live: a progress table of
    the generation steps is redrawn in place until the run completes. Press
    Ctrl-C to stop watching; generation continues on the server.

    Exit codes while watching: 0 when the run completed, 7 when the server
    rejected the session, 130 when interrupted.

    Example::

        quickcode generate demo
        quickcode generate --no-watch --session-id my-run-1
    """
    config = effective_config(ctx)
    credentials = project_credentials(config, project, email, secret_code)
    session = session_id.strip() if session_id and session_id.strip() else new_session_id()

    with open_api(config) as api:
        started = api.generate_project_solution(credentials, session)
        if not started:
            warning("API returned failure response.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)

        success(f"Generation started for '{credentials.project}'. Session: {session}")
        if not watch:
            info(f"Follow it later with: quickcode watch {session}")
            return
        _watch_session(ctx, config, api, session)


def watch_command(
    ctx: typer.Context,
    session_id: str = typer.Argument(help="Session id passed to 'generate'."),
) -> None:
    """Follow a generation run that was started earlier.

    Example::

        quickcode watch 3f2a9c0d5e7b41a8b6c2d9e0f1a2b3c4
    """
    config = effective_config(ctx)
    with open_api(config) as api:
        _watch_session(ctx, config, api, session_id)


def status_command(
    ctx: typer.Context,
    session_id: str = typer.Option(..., "--session-id", help="Session id of the run."),
) -> None:
    """Print the run record of a generation session once.

    Example::

        quickcode status --session-id 3f2a9c0d5e7b41a8b6c2d9e0f1a2b3c4
    """
    from quickcode.output import OutputFormat
    from quickcode.watch import StatusClient

    config = effective_config(ctx)
    with open_api(config) as api:
        status = StatusClient(api).get_job_status(session_id)

    if status is None:
        info("No active generation found.")
        return

    if get_output().format == OutputFormat.JSON:
        format_response(
            {
                "run_id": status.run_id,
                "project": status.project_name,
                "started": status.start_date.isoformat() if status.start_date else None,
                "finished": status.is_finished,
            }
        )
        return
    print_data(f"Run ID: {status.run_id}")
    print_data(f"Project: {status.project_name or '-'}")
    print_data(f"Started: {status.start_date.isoformat() if status.start_date else '-'}")
    print_data(f"Finished: {'yes' if status.is_finished else 'no'}")
