"""
Bounded query execution.

Engine calls are CPU-bound and synchronous. The HTTP layer runs them on a
fixed-size worker pool and stops waiting after a timeout, so a pathological
expression cannot hold a request (or the event loop) indefinitely.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from bird_db.errors import QueryTimeoutError

logger = logging.getLogger(__name__)


class QueryRunner:
    """Runs blocking query callables off the event loop with a timeout."""

    def __init__(self, timeout_seconds: float = 10.0, max_workers: int = 4):
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="bird-query"
        )

    async def run(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run ``func(*args, **kwargs)`` in the worker pool.

        Raises:
            QueryTimeoutError: If the call does not finish within the timeout.
                The worker thread keeps running until the call returns; only
                the waiting request is released.
        """
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            self._executor, functools.partial(func, *args, **kwargs)
        )
        try:
            return await asyncio.wait_for(future, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Query {getattr(func, '__name__', func)!s} exceeded {self.timeout_seconds}s"
            )
            raise QueryTimeoutError(
                "Query timed out",
                details=f"Query exceeded the {self.timeout_seconds:g}s execution limit",
            ) from e

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
