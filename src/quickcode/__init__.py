"""quickcode -- command-line client for the QuickCode code-generation API.

The CLI stores project credentials locally, talks to the QuickCode REST API
to manage projects and their modules, moves DBML schema files between the
API and a local project folder, and triggers remote generation runs whose
progress it follows live in the terminal.

Typical workflow::

    quickcode project create --name demo --email me@example.com
    quickcode config set secret_code 123456 --project demo
    quickcode module add --project demo --module-name Orders
    quickcode generate demo          # trigger and watch generation

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models for configuration and API payloads.
    config: XDG-aware configuration and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    watch: Live generation-progress watcher (push, polling, rendering).
"""

__version__ = "0.3.1"
