import logging
from typing import Any, Awaitable, Callable

import anyio

logger = logging.getLogger(__name__)


def run_on_loop(func: Callable[..., Awaitable[Any]], *args: Any) -> None:
    """
    Run an async function on the application event loop from sync code.

    Change-feed callbacks fire on the request worker thread (sync endpoints
    run in AnyIO's thread pool) while websockets live on the loop. Called
    from anywhere else there is no loop to hand off to and the call is
    skipped.
    """
    try:
        anyio.from_thread.run(func, *args)
    except RuntimeError as e:
        logger.debug("Skipped %s outside an AnyIO worker thread: %s", func.__name__, e)
