from __future__ import annotations

import asyncio
import inspect
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from filepilot.core.logging import get_logger
from filepilot.services.search_provider import (
    SearchFinished,
    SearchProvider,
    SearchRequest,
    SearchResult,
    SearchResultEvent,
    SearchStarted,
    SearchSubscription,
)

PathCallback = Callable[[str], Union[None, Awaitable[Any]]]


class SearchPhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SEARCHING = "searching"


@dataclass
class SearchSessionState:
    results: List[SearchResult] = field(default_factory=list)
    total_matches: int = 0
    has_more: bool = False
    is_searching: bool = False


class SearchSession:
    """Debounced incremental search against a SearchProvider.

    Each request gets the next monotonic id. Starting a request cancels the
    previous subscription, and results are only applied while their id is
    still the current one.
    """

    def __init__(
        self,
        provider: SearchProvider,
        *,
        debounce_ms: int = 300,
        navigate: Optional[PathCallback] = None,
        open_file: Optional[PathCallback] = None,
    ):
        self.provider = provider
        self.debounce_ms = debounce_ms
        self._navigate = navigate
        self._open_file = open_file
        self.logger = get_logger("filepilot.search.session")

        self.phase = SearchPhase.IDLE
        self.query = ""
        self.path = ""
        self._state = SearchSessionState()
        self._last_id = 0
        self._current_id = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._search_task: Optional[asyncio.Task] = None
        self._subscription: Optional[SearchSubscription] = None
        self._listeners: List[Callable[[SearchSessionState], None]] = []

    # --- observers ---
    @property
    def state(self) -> SearchSessionState:
        s = self._state
        return replace(s, results=list(s.results))

    @property
    def current_request_id(self) -> int:
        return self._current_id

    def add_listener(self, listener: Callable[[SearchSessionState], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    # --- input ---
    def set_query(self, query: str, path: str) -> None:
        """Called on every keystroke; must run inside the event loop."""
        self._cancel_debounce()
        self.query = query
        self.path = path
        if not query:
            self.clear()
            return
        self.phase = SearchPhase.DEBOUNCING
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounce(query, path))

    def clear(self) -> None:
        """Reset to idle with no results, without waiting for the debounce."""
        self._cancel_debounce()
        self._stop_search()
        self.query = ""
        self.phase = SearchPhase.IDLE
        # No request is current; late events from older ones never match.
        self._current_id = 0
        self._state = SearchSessionState()
        self._changed()

    async def _debounce(self, query: str, path: str) -> None:
        await asyncio.sleep(self.debounce_ms / 1000.0)
        self._debounce_task = None
        self._start(query, path, skip=0)

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    def _next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    # --- requests ---
    def _start(self, query: str, path: str, *, skip: int) -> SearchRequest:
        self._stop_search()
        request = SearchRequest(id=self._next_id(), query=query, path=path, skip=skip)
        self._current_id = request.id
        if skip == 0:
            self._state = SearchSessionState(is_searching=True)
        else:
            self._state.is_searching = True
        self.phase = SearchPhase.SEARCHING
        self.logger.debug(f"search #{request.id}: {query!r} in {path} (skip={skip})")
        self._changed()

        self._subscription = self.provider.subscribe(request)
        self._search_task = asyncio.get_running_loop().create_task(self._consume(self._subscription))
        return request

    def _stop_search(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._search_task is not None:
            self._search_task.cancel()
            self._search_task = None

    async def _consume(self, sub: SearchSubscription) -> None:
        request_id = sub.request.id
        finished = False
        try:
            async with aclosing(sub.stream()) as events:
                async for event in events:
                    if request_id != self._current_id:
                        # superseded while we were waiting on the provider
                        return
                    if isinstance(event, SearchStarted):
                        self.logger.debug(f"search #{request_id} started: {event.query!r}")
                    elif isinstance(event, SearchResultEvent):
                        self._state.results.append(event.result)
                        self._changed()
                    elif isinstance(event, SearchFinished):
                        finished = True
                        self._state.total_matches = event.total_matches
                        self._state.has_more = event.has_more
                        break
        except Exception as e:
            # Search failures are never user-visible errors.
            self.logger.warning(f"search #{request_id} failed: {e}")
        if request_id != self._current_id:
            return
        if not finished:
            self.logger.debug(f"search #{request_id} ended without a finished event")
        self._state.is_searching = False
        if self.phase == SearchPhase.SEARCHING:
            self.phase = SearchPhase.IDLE
        self._search_task = None
        self._subscription = None
        self._changed()

    async def load_more(self) -> Optional[SearchRequest]:
        """Fetch the next page for the current query, appending to the results."""
        s = self._state
        if not self.query or s.is_searching or not s.has_more:
            return None
        request = self._start(self.query, self.path, skip=len(s.results))
        await self.wait_idle()
        return request

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or search stream is pending."""
        while True:
            task = self._debounce_task or self._search_task
            if task is None or task.done():
                return
            # asyncio.wait does not raise when the awaited task is cancelled
            await asyncio.wait({task})

    async def select(self, result: SearchResult) -> None:
        """Directories navigate, files go to the external opener; then reset."""
        target = self._open_file if result.is_file else self._navigate
        if target is None:
            self.logger.info(f"no handler to {'open' if result.is_file else 'navigate to'} {result.path}")
        else:
            ret = target(result.path)
            if inspect.isawaitable(ret):
                await ret
        self.clear()

    async def close(self) -> None:
        tasks = [t for t in (self._debounce_task, self._search_task) if t is not None]
        self._cancel_debounce()
        self._stop_search()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self.phase = SearchPhase.IDLE
