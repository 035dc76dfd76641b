"""
Wait for SQL Server to accept connections.

A service started next to its database (docker compose, k8s) usually comes up
first. open_with_retry() keeps trying to open the pool with a fixed pause
between attempts and, unless a maximum is configured, never gives up.
"""

import logging
import threading
from collections.abc import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    stop_after_attempt,
    stop_never,
    stop_when_event_set,
    wait_fixed,
)

from mssql_access.core.errors import DatabaseUnavailableError

_log = logging.getLogger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    _log.error(
        "DB returned the following error: (%s); retrying in %.1fs (attempt %d)",
        exc,
        wait,
        retry_state.attempt_number,
    )


async def open_with_retry(
    open_pool: Callable[[], Awaitable[None]],
    *,
    interval: float,
    max_retries: int | None = None,
    cancel: threading.Event | None = None,
) -> bool:
    """
    Call *open_pool* until it succeeds.

    - interval: fixed pause between attempts (seconds).
    - max_retries: retries after the first attempt; None = no limit.
    - cancel: when set, stop retrying and return False.

    Returns True once the pool is open. Raises DatabaseUnavailableError when
    max_retries is exhausted.
    """
    cancel = cancel or threading.Event()
    stop = stop_never if max_retries is None else stop_after_attempt(max_retries + 1)

    try:
        async for attempt in AsyncRetrying(
            stop=stop | stop_when_event_set(cancel),
            wait=wait_fixed(interval),
            before_sleep=_log_retry,
        ):
            with attempt:
                if cancel.is_set():
                    return False
                await open_pool()
    except RetryError as e:
        if cancel.is_set():
            return False
        last = e.last_attempt.exception()
        raise DatabaseUnavailableError(
            f"SQL Server not reachable after {e.last_attempt.attempt_number} attempts"
        ) from last
    return True
