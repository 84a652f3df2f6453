from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Union

from filepilot.core.cancel import CancelToken
from filepilot.core.errors import OperationCancelledError, ProviderError
from filepilot.core.logging import get_logger
from filepilot.services.files_base import FilesBackend

_log = get_logger("filepilot.search")


@dataclass(frozen=True)
class SearchRequest:
    id: int
    query: str
    path: str
    skip: int = 0


@dataclass(frozen=True)
class SearchResult:
    path: str
    name: str
    is_file: bool
    size: int
    modified_time: int


@dataclass(frozen=True)
class SearchStarted:
    query: str
    request_id: int


@dataclass(frozen=True)
class SearchResultEvent:
    request_id: int
    result: SearchResult


@dataclass(frozen=True)
class SearchFinished:
    request_id: int
    total_matches: int
    has_more: bool


SearchEvent = Union[SearchStarted, SearchResultEvent, SearchFinished]


class SearchProvider(ABC):
    @abstractmethod
    def events(self, request: SearchRequest, cancel: CancelToken) -> AsyncIterator[SearchEvent]:
        """Yield the event stream for one request; stop once ``cancel`` is set."""
        raise NotImplementedError

    def subscribe(self, request: SearchRequest) -> "SearchSubscription":
        return SearchSubscription(self, request)


class SearchSubscription:
    """One cancellable producer per request id.

    Iterating yields only events tagged with this request's id; anything else
    is a stale result and is dropped here. ``cancel`` stops the provider at
    its next check.
    """

    def __init__(self, provider: SearchProvider, request: SearchRequest):
        self.provider = provider
        self.request = request
        self.token = CancelToken()
        self.dropped = 0

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        self.token.cancel("Search superseded")

    async def stream(self) -> AsyncIterator[SearchEvent]:
        source = self.provider.events(self.request, self.token)
        try:
            async for event in source:
                if self.token.cancelled:
                    break
                if event.request_id != self.request.id:
                    self.dropped += 1
                    _log.debug(f"dropping stale event for request {event.request_id} (current {self.request.id})")
                    continue
                yield event
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    def __aiter__(self) -> AsyncIterator[SearchEvent]:
        return self.stream()


class StorageSearchProvider(SearchProvider):
    """Case-insensitive name search over a FilesBackend.

    Breadth-first, so matches in the start directory are reported first.
    Results beyond ``skip + page_size`` are counted but not emitted.
    """

    def __init__(self, files: FilesBackend, page_size: int = 200):
        self.files = files
        self.page_size = page_size

    async def events(self, request: SearchRequest, cancel: CancelToken) -> AsyncIterator[SearchEvent]:
        yield SearchStarted(query=request.query, request_id=request.id)
        needle = request.query.lower()
        total = 0
        emitted = 0
        limit = request.skip + self.page_size

        queue = deque([request.path])
        first = True
        while queue:
            if cancel.cancelled:
                return
            directory = queue.popleft()
            try:
                entries = await self.files.read_dir(directory, cancel=cancel)
            except OperationCancelledError:
                return
            except ProviderError as e:
                if first:
                    raise
                _log.debug(f"search: skipping unreadable directory {directory}: {e}")
                continue
            first = False

            for entry in entries:
                path = self.files.join(directory, entry.name)
                if entry.is_dir:
                    queue.append(path)
                if needle not in entry.name.lower():
                    continue
                total += 1
                if total <= request.skip or total > limit:
                    continue
                try:
                    st = await self.files.stat(path)
                except ProviderError as e:
                    _log.debug(f"search: stat failed for {path}: {e}")
                    continue
                emitted += 1
                yield SearchResultEvent(
                    request_id=request.id,
                    result=SearchResult(
                        path=path,
                        name=entry.name,
                        is_file=not entry.is_dir,
                        size=st.size,
                        modified_time=st.mtime,
                    ),
                )
            # Let other tasks (keystrokes, transfers) run between directories.
            await asyncio.sleep(0)

        yield SearchFinished(request_id=request.id, total_matches=total, has_more=total > limit)
