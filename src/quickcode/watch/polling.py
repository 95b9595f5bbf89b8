"""HTTP polling substitute for the push channel."""

from __future__ import annotations

from typing import Callable, Optional

import httpx

from quickcode.exceptions import QuickCodeError
from quickcode.models import JobStatus
from quickcode.output import get_output
from quickcode.watch.cancel import CancellationToken
from quickcode.watch.status import StatusClient


class PollingFallback:
    """Poll the run status at a fixed interval.

    Used for the rest of a watch session once the push channel has failed.
    Never runs alongside a :class:`~quickcode.watch.push.PushChannel` for the
    same session.
    """

    def __init__(self, status_client: StatusClient) -> None:
        self._status = status_client

    def run(
        self,
        session_id: str,
        interval: float,
        on_update: Callable[[JobStatus], None],
        token: CancellationToken,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """Poll until the run finishes or *token* is cancelled.

        *on_update* is called with every status the server returns. The loop
        ends on its own after a status with ``is_finished`` set; the callback
        may also cancel *token* to stop earlier. Failed requests go to
        *on_error* (a warning by default) and are retried after the next
        interval.
        """
        while not token.is_cancelled:
            try:
                status = self._status.get_job_status(session_id)
            except (QuickCodeError, httpx.HTTPError) as exc:
                if on_error is not None:
                    on_error(exc)
                else:
                    get_output().warning(f"Status check failed: {exc}")
            else:
                if token.is_cancelled:
                    return
                if status is not None:
                    on_update(status)
                    if status.is_finished:
                        return

            if token.wait(interval):
                return
