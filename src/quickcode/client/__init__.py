"""HTTP client module for quickcode.

Classes:
    :class:`SyncClient` -- blocking transport backed by :class:`httpx.Client`
    with verbose tracing, retry, and typed error mapping.
    :class:`QuickCodeApi` -- one method per QuickCode REST endpoint.

Example::

    from quickcode.client import QuickCodeApi, SyncClient

    with SyncClient(config.api_url, config.request) as client:
        exists = QuickCodeApi(client).check_project_name("demo")
"""

from quickcode.client.api import ProjectCredentials, QuickCodeApi
from quickcode.client.sync_client import SyncClient

__all__ = ["ProjectCredentials", "QuickCodeApi", "SyncClient"]
