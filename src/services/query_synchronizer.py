# src/services/query_synchronizer.py

"""Keyed page cache with stale-while-revalidate, retries and prefetch."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Protocol

from src.api.errors import AbortedError, CatalogError
from src.config.settings import Settings
from src.models.page import PageRequest, PageResult
from src.models.sync_state import ErrorInfo, SyncState, SyncStatus
from src.services.cancellation import CancellationToken

logger = logging.getLogger("catalog_browser.sync")

StateListener = Callable[[PageRequest, SyncState], None]


class PageFetcher(Protocol):
    """Anything that can fetch one page (see ``ProductsClient``)."""

    async def fetch(
        self,
        page: int,
        limit: int,
        token: CancellationToken | None = None,
    ) -> PageResult: ...


@dataclass
class _InFlight:
    """The single running fetch for a key."""

    task: "asyncio.Task[PageResult | None]"
    token: CancellationToken
    generation: int


class QuerySynchronizer:
    """Coordinates every page fetch issued by the application.

    Per key there is at most one in-flight fetch, and every consumer
    (the active view, a prefetch, ``fetch_query`` callers) shares it.
    Cached successes are served without network while *fresh*,
    served and revalidated in the background while merely *retained*,
    and evicted after that.

    Only one key is *active* at a time.  Activating another key
    cancels the previous active fetch; every fetch carries the
    generation it was issued under, and a completion whose slot has
    moved on is discarded so a late response can never overwrite
    newer state.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        fresh_ttl: float | None = None,
        retention_ttl: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._fresh_ttl = (
            Settings.FRESH_TTL if fresh_ttl is None else fresh_ttl
        )
        self._retention_ttl = (
            Settings.RETENTION_TTL
            if retention_ttl is None
            else retention_ttl
        )
        if self._retention_ttl <= self._fresh_ttl:
            raise ValueError(
                "retention_ttl must be greater than fresh_ttl"
            )
        self._max_retries = (
            Settings.MAX_RETRIES if max_retries is None else max_retries
        )
        self._retry_delay = (
            Settings.RETRY_BASE_DELAY
            if retry_delay is None
            else retry_delay
        )
        self._clock = clock

        self._states: dict[PageRequest, SyncState] = {}
        self._inflight: dict[PageRequest, _InFlight] = {}
        self._listeners: dict[PageRequest, list[StateListener]] = {}
        # Strong refs until done, including cancelled-but-running tasks
        self._tasks: set[asyncio.Task[PageResult | None]] = set()
        self._active: PageRequest | None = None
        self._generation = 0

    # ── Queries ──────────────────────────────────────────

    @property
    def active_key(self) -> PageRequest | None:
        return self._active

    def get_state(self, key: PageRequest) -> SyncState:
        """Current snapshot for *key* (``idle`` when unknown)."""
        self._evict_expired(self._clock())
        return self._states.get(key, SyncState())

    def is_in_flight(self, key: PageRequest) -> bool:
        return key in self._inflight

    # ── Observers ────────────────────────────────────────

    def subscribe(
        self,
        key: PageRequest,
        listener: StateListener,
    ) -> Callable[[], None]:
        """Call *listener* on every state transition of *key*.

        Returns a function that removes the subscription.
        """
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def _set_state(self, key: PageRequest, state: SyncState) -> None:
        self._states[key] = state
        for listener in list(self._listeners.get(key, ())):
            listener(key, state)

    # ── Intents ──────────────────────────────────────────

    def activate(self, key: PageRequest) -> SyncState:
        """Make *key* the displayed query and make sure it has data.

        Cancels the previous active key's fetch when the key changes.
        """
        previous = self._active
        if previous is not None and previous != key:
            self._cancel(previous, f"superseded by {key}")
        self._active = key
        state = self._ensure(key)
        if state.status is SyncStatus.SUCCESS:
            self._prefetch_next(key, state)
        return state

    def prefetch(self, key: PageRequest) -> SyncState:
        """Warm the cache for *key* without making it active."""
        return self._ensure(key)

    def refetch(self, key: PageRequest) -> SyncState:
        """Re-issue *key* regardless of freshness (explicit retry)."""
        if key in self._inflight:
            return self._states[key]
        logger.info("Refetch requested for %s", key)
        return self._start_fetch(key)

    async def fetch_query(self, key: PageRequest) -> PageResult:
        """Return data for *key*, joining any in-flight fetch.

        Cached data (fresh or stale) is returned immediately.
        Raises the last fetch error, or ``AbortedError`` when the
        shared fetch was cancelled.
        """
        state = self._ensure(key)
        if (
            state.status is SyncStatus.SUCCESS
            and state.result is not None
        ):
            return state.result
        slot = self._inflight.get(key)
        if slot is not None:
            await asyncio.shield(slot.task)
        state = self._states.get(key, SyncState())
        if (
            state.status is SyncStatus.SUCCESS
            and state.result is not None
        ):
            return state.result
        if state.error is not None and state.error.exception:
            raise state.error.exception
        raise AbortedError(f"fetch for {key} was cancelled")

    async def settle(self) -> None:
        """Wait until no fetch task (including prefetches) is running."""
        while self._tasks:
            await asyncio.gather(
                *list(self._tasks), return_exceptions=True
            )

    def clear(self) -> int:
        """Drop every cached entry that has no fetch running.

        Returns the number of entries removed.
        """
        stale = [k for k in self._states if k not in self._inflight]
        for key in stale:
            del self._states[key]
        logger.info(
            "Query cache manually purged (%d entries removed)",
            len(stale),
        )
        return len(stale)

    def reset(self) -> None:
        """Cancel every fetch and forget all state (listeners are kept)."""
        for key in list(self._inflight):
            self._cancel(key, "reset")
        self._states.clear()
        self._active = None
        logger.info("Synchronizer reset")

    # ── Internals ────────────────────────────────────────

    def _ensure(self, key: PageRequest) -> SyncState:
        """Serve *key* from cache or start a fetch, per the TTL policy."""
        now = self._clock()
        self._evict_expired(now)
        if key in self._inflight:
            return self._states[key]

        state = self._states.get(key)
        if (
            state is not None
            and state.status is SyncStatus.SUCCESS
            and state.fetched_at is not None
        ):
            age = now - state.fetched_at
            if age < self._fresh_ttl:
                logger.debug("Fresh cache hit for %s", key)
                return state
            logger.info(
                "Stale cache hit for %s (age %.0fs), revalidating",
                key,
                age,
            )
        return self._start_fetch(key)

    def _start_fetch(self, key: PageRequest) -> SyncState:
        self._generation += 1
        generation = self._generation
        token = CancellationToken()
        task = asyncio.get_running_loop().create_task(
            self._run(key, token, generation),
            name=f"fetch-page-{key.page}-limit-{key.limit}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._inflight[key] = _InFlight(task, token, generation)

        previous = self._states.get(key, SyncState())
        pending = replace(
            previous,
            status=(
                SyncStatus.SUCCESS
                if previous.result is not None
                else SyncStatus.PENDING
            ),
            error=None,
            is_fetching=True,
        )
        self._set_state(key, pending)
        return pending

    async def _run(
        self,
        key: PageRequest,
        token: CancellationToken,
        generation: int,
    ) -> PageResult | None:
        attempt = 0
        while True:
            try:
                result = await self._fetcher.fetch(
                    key.page, key.limit, token
                )
                break
            except AbortedError:
                logger.debug("Fetch for %s aborted", key)
                if self._release(key, generation):
                    self._set_state(key, self._reverted(key))
                return None
            except CatalogError as exc:
                if token.cancelled:
                    self._release(key, generation)
                    return None
                if attempt >= self._max_retries:
                    self._complete_error(key, generation, exc, attempt + 1)
                    return None
                attempt += 1
                delay = min(
                    self._retry_delay * 2 ** (attempt - 1),
                    Settings.RETRY_MAX_DELAY,
                )
                logger.warning(
                    "Fetch for %s failed (%s), retry %d/%d in %.1fs",
                    key,
                    exc,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await asyncio.sleep(delay)
                if token.cancelled:
                    self._release(key, generation)
                    return None
            except Exception as exc:
                # Unknown failures are not retried
                logger.error(
                    "Unexpected error fetching %s", key, exc_info=True
                )
                self._complete_error(key, generation, exc, attempt + 1)
                return None

        self._complete_success(key, generation, result)
        return result

    def _release(self, key: PageRequest, generation: int) -> bool:
        """Free the slot if it still belongs to *generation*.

        Returns False when the fetch was cancelled or superseded and
        its outcome must be discarded.
        """
        slot = self._inflight.get(key)
        if slot is None or slot.generation != generation:
            return False
        del self._inflight[key]
        return not slot.token.cancelled

    def _complete_success(
        self,
        key: PageRequest,
        generation: int,
        result: PageResult,
    ) -> None:
        if not self._release(key, generation):
            logger.debug("Discarding late result for %s", key)
            return
        self._set_state(
            key,
            SyncState(
                status=SyncStatus.SUCCESS,
                result=result,
                fetched_at=self._clock(),
            ),
        )
        if key == self._active:
            self._prefetch_next(key, self._states[key])

    def _complete_error(
        self,
        key: PageRequest,
        generation: int,
        exc: Exception,
        attempts: int,
    ) -> None:
        if not self._release(key, generation):
            logger.debug("Discarding late failure for %s", key)
            return
        logger.error(
            "Fetch for %s failed after %d attempt(s): %s",
            key,
            attempts,
            exc,
        )
        previous = self._states.get(key, SyncState())
        self._set_state(
            key,
            replace(
                previous,
                status=SyncStatus.ERROR,
                error=ErrorInfo.from_exception(exc),
                is_fetching=False,
            ),
        )

    def _cancel(self, key: PageRequest, reason: str) -> None:
        slot = self._inflight.pop(key, None)
        if slot is None:
            return
        slot.token.cancel(reason)
        logger.info("Cancelled fetch for %s (%s)", key, reason)
        self._set_state(key, self._reverted(key))

    def _reverted(self, key: PageRequest) -> SyncState:
        """State of *key* once its pending fetch is dropped."""
        previous = self._states.get(key, SyncState())
        if previous.result is not None:
            return replace(
                previous, status=SyncStatus.SUCCESS, is_fetching=False
            )
        return SyncState()

    def _prefetch_next(self, key: PageRequest, state: SyncState) -> None:
        if state.result is None:
            return
        if key.page < state.result.total_pages(key.limit):
            logger.debug("Prefetching %s", key.next())
            self.prefetch(key.next())

    def _evict_expired(self, now: float) -> None:
        """Remove entries whose last success is beyond retention."""
        expired = [
            key
            for key, state in self._states.items()
            if key not in self._inflight
            and state.fetched_at is not None
            and now - state.fetched_at >= self._retention_ttl
        ]
        for key in expired:
            del self._states[key]
        if expired:
            logger.debug(
                "Evicted %d expired cache entries", len(expired)
            )
