import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[Any]]
ResultCallback = Callable[[str, Any], Any]


class DebouncedSearch:
    """
    Debounced autocomplete search.

    Every call to ``update`` cancels the pending timer and any in-flight
    search, so only the latest query can deliver a result. Queries shorter
    than ``min_length`` clear the suggestions immediately and never reach
    ``search_fn``.
    """

    def __init__(self, search_fn: SearchFn, on_result: ResultCallback,
                 delay: float = 0.3, min_length: int = 3, empty_result: Any = None):
        self.search_fn = search_fn
        self.on_result = on_result
        self.delay = delay
        self.min_length = min_length
        self.empty_result = [] if empty_result is None else empty_result
        self._task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def update(self, query: str) -> None:
        self.cancel()
        query = (query or "").strip()
        if len(query) < self.min_length:
            self._deliver(query, self.empty_result)
            return
        self._task = asyncio.get_running_loop().create_task(self._run(query, self._generation))

    def cancel(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending search, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self, query: str, generation: int) -> None:
        await asyncio.sleep(self.delay)
        try:
            result = await self.search_fn(query)
        except Exception as e:
            logger.error(f"Search failed for {query!r}: {e}")
            result = self.empty_result
        # a newer keystroke may have landed while the search was awaited
        if generation == self._generation:
            self._deliver(query, result)

    def _deliver(self, query: str, result: Any) -> None:
        logger.debug(f"Delivering search result for {query!r}")
        self.on_result(query, result)
