# tests/test_query_synchronizer.py

"""Tests for the keyed query cache and synchroniser."""

import asyncio
import unittest

from src.api.errors import HttpError, NetworkError
from src.models.page import PageRequest
from src.models.sync_state import SyncState, SyncStatus
from src.services.query_synchronizer import QuerySynchronizer
from tests.fakes import FakeFetcher

P1 = PageRequest(1, 10)
P2 = PageRequest(2, 10)
P3 = PageRequest(3, 10)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _make_sync(
    fetcher: FakeFetcher, clock: FakeClock | None = None
) -> QuerySynchronizer:
    return QuerySynchronizer(
        fetcher,
        fresh_ttl=120.0,
        retention_ttl=600.0,
        max_retries=2,
        retry_delay=0.0,
        clock=clock or FakeClock(),
    )


class TestColdFetch(unittest.IsolatedAsyncioTestCase):
    """First access of a key."""

    async def test_activate_starts_loading(self) -> None:
        """A cold key is pending with nothing to show."""
        sync = _make_sync(FakeFetcher())
        state = sync.activate(P1)
        self.assertEqual(state.status, SyncStatus.PENDING)
        self.assertTrue(state.is_loading)
        self.assertTrue(sync.is_in_flight(P1))
        await sync.settle()

    async def test_success_populates_cache(self) -> None:
        """After settling, the page and its total are cached."""
        fetcher = FakeFetcher(total=57)
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()

        state = sync.get_state(P1)
        self.assertEqual(state.status, SyncStatus.SUCCESS)
        assert state.result is not None
        self.assertEqual(len(state.result.items), 10)
        self.assertEqual(state.result.total, 57)
        self.assertFalse(state.is_fetching)
        self.assertEqual(fetcher.calls_for(1), 1)

    async def test_unknown_key_is_idle(self) -> None:
        """Keys never requested report an idle state."""
        sync = _make_sync(FakeFetcher())
        self.assertEqual(sync.get_state(P3).status, SyncStatus.IDLE)


class TestFreshness(unittest.IsolatedAsyncioTestCase):
    """Freshness, stale-while-revalidate and eviction windows."""

    async def test_fresh_hit_makes_no_network_call(self) -> None:
        """Within the freshness window the cache answers alone."""
        fetcher = FakeFetcher(total=57)
        clock = FakeClock()
        sync = _make_sync(fetcher, clock)
        sync.activate(P1)
        await sync.settle()
        calls_before = len(fetcher.calls)

        clock.now += 60
        state = sync.activate(P1)
        await sync.settle()

        self.assertEqual(state.status, SyncStatus.SUCCESS)
        self.assertFalse(state.is_fetching)
        self.assertEqual(len(fetcher.calls), calls_before)

    async def test_stale_hit_returns_data_and_revalidates_once(
        self,
    ) -> None:
        """Between freshness and retention: cached data + one refetch."""
        fetcher = FakeFetcher(total=5)
        clock = FakeClock()
        sync = _make_sync(fetcher, clock)
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(fetcher.calls_for(1), 1)

        clock.now += 300
        state = sync.activate(P1)
        self.assertEqual(state.status, SyncStatus.SUCCESS)
        self.assertIsNotNone(state.result)
        self.assertTrue(state.is_refreshing)
        self.assertFalse(state.is_loading)

        await sync.settle()
        self.assertEqual(fetcher.calls_for(1), 2)
        refreshed = sync.get_state(P1)
        self.assertEqual(refreshed.fetched_at, clock.now)
        self.assertFalse(refreshed.is_refreshing)

    async def test_stale_hit_twice_shares_one_refetch(self) -> None:
        """A second access during revalidation joins the running fetch."""
        fetcher = FakeFetcher(total=5)
        clock = FakeClock()
        sync = _make_sync(fetcher, clock)
        sync.activate(P1)
        await sync.settle()

        clock.now += 300
        sync.activate(P1)
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(fetcher.calls_for(1), 2)

    async def test_entry_evicted_after_retention(self) -> None:
        """Past retention the entry is gone and access is a cold fetch."""
        fetcher = FakeFetcher(total=5)
        clock = FakeClock()
        sync = _make_sync(fetcher, clock)
        sync.activate(P1)
        await sync.settle()

        clock.now += 700
        self.assertEqual(sync.get_state(P1).status, SyncStatus.IDLE)
        state = sync.activate(P1)
        self.assertTrue(state.is_loading)
        await sync.settle()
        self.assertEqual(fetcher.calls_for(1), 2)

    def test_retention_must_exceed_freshness(self) -> None:
        """Constructing with retention <= freshness is rejected."""
        with self.assertRaises(ValueError):
            QuerySynchronizer(
                FakeFetcher(), fresh_ttl=600.0, retention_ttl=120.0
            )


class TestSharedInFlight(unittest.IsolatedAsyncioTestCase):
    """One network call per key, however many consumers."""

    async def test_concurrent_fetch_query_dedupes(self) -> None:
        """Two concurrent consumers share a single fetch."""
        fetcher = FakeFetcher(total=57, delays={1: 0.01})
        sync = _make_sync(fetcher)
        first, second = await asyncio.gather(
            sync.fetch_query(P1), sync.fetch_query(P1)
        )
        self.assertEqual(fetcher.calls_for(1), 1)
        self.assertEqual(first, second)

    async def test_prefetch_joins_active_fetch(self) -> None:
        """Prefetching a key that is already loading issues nothing new."""
        fetcher = FakeFetcher(total=5, delays={1: 0.01})
        sync = _make_sync(fetcher)
        sync.activate(P1)
        sync.prefetch(P1)
        await sync.settle()
        self.assertEqual(fetcher.calls_for(1), 1)

    async def test_fetch_query_raises_last_error(self) -> None:
        """fetch_query surfaces the error once retries are exhausted."""
        fetcher = FakeFetcher()
        fetcher.failures[P1] = [HttpError(500)] * 3
        sync = _make_sync(fetcher)
        with self.assertRaises(HttpError):
            await sync.fetch_query(P1)


class TestRetry(unittest.IsolatedAsyncioTestCase):
    """Bounded retry before surfacing an error state."""

    async def test_recovers_within_retry_budget(self) -> None:
        """Two failures then success ends in success after 3 calls."""
        fetcher = FakeFetcher(total=5)
        fetcher.failures[P1] = [NetworkError("reset"), HttpError(502)]
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(sync.get_state(P1).status, SyncStatus.SUCCESS)
        self.assertEqual(fetcher.calls_for(1), 3)

    async def test_error_after_retries_exhausted(self) -> None:
        """Three failures surface an error with the HTTP status."""
        fetcher = FakeFetcher(total=5)
        fetcher.failures[P1] = [HttpError(503) for _ in range(3)]
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()

        state = sync.get_state(P1)
        self.assertEqual(state.status, SyncStatus.ERROR)
        assert state.error is not None
        self.assertEqual(state.error.kind, "HttpError")
        self.assertEqual(state.error.status, 503)
        self.assertEqual(fetcher.calls_for(1), 3)
        self.assertFalse(state.is_fetching)

    async def test_unexpected_exception_becomes_error_state(
        self,
    ) -> None:
        """A non-catalog failure is surfaced once and frees the key."""
        fetcher = FakeFetcher(total=5)
        fetcher.failures[P1] = [RuntimeError("bad fetcher")]
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()

        state = sync.get_state(P1)
        self.assertEqual(state.status, SyncStatus.ERROR)
        assert state.error is not None
        self.assertEqual(state.error.kind, "RuntimeError")
        self.assertFalse(state.is_fetching)
        self.assertFalse(sync.is_in_flight(P1))
        self.assertEqual(fetcher.calls_for(1), 1)

        sync.refetch(P1)
        await sync.settle()
        self.assertEqual(sync.get_state(P1).status, SyncStatus.SUCCESS)

    async def test_refetch_recovers_from_error(self) -> None:
        """An explicit refetch re-issues the same request."""
        fetcher = FakeFetcher(total=5)
        fetcher.failures[P1] = [NetworkError("down") for _ in range(3)]
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(sync.get_state(P1).status, SyncStatus.ERROR)

        pending = sync.refetch(P1)
        self.assertEqual(pending.status, SyncStatus.PENDING)
        self.assertIsNone(pending.error)
        await sync.settle()
        self.assertEqual(sync.get_state(P1).status, SyncStatus.SUCCESS)


class TestCancellation(unittest.IsolatedAsyncioTestCase):
    """Superseded requests never overwrite newer state."""

    async def test_late_result_of_superseded_page_is_discarded(
        self,
    ) -> None:
        """Slow page 1 then fast page 2: only page 2 is shown."""
        fetcher = FakeFetcher(total=57, delays={1: 0.05})
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await asyncio.sleep(0)
        sync.activate(P2)
        await sync.settle()

        self.assertEqual(sync.active_key, P2)
        active = sync.get_state(P2)
        self.assertEqual(active.status, SyncStatus.SUCCESS)
        assert active.result is not None
        self.assertEqual(
            [p.id for p in active.result.items], list(range(11, 21))
        )
        # Page 1's response arrived but was dropped
        self.assertEqual(fetcher.calls_for(1), 1)
        abandoned = sync.get_state(P1)
        self.assertEqual(abandoned.status, SyncStatus.IDLE)
        self.assertIsNone(abandoned.result)

    async def test_aborted_fetch_is_not_retried(self) -> None:
        """A fetcher honouring the token raises AbortedError, no retry."""
        fetcher = FakeFetcher(
            total=57, delays={1: 0.02}, honour_token=True
        )
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await asyncio.sleep(0)
        sync.activate(P2)
        await sync.settle()

        self.assertEqual(fetcher.calls_for(1), 1)
        state = sync.get_state(P1)
        self.assertEqual(state.status, SyncStatus.IDLE)
        self.assertIsNone(state.error)

    async def test_cancel_keeps_previous_data(self) -> None:
        """Cancelling a revalidation leaves the cached page intact."""
        fetcher = FakeFetcher(total=57, delays={1: 0.02})
        clock = FakeClock()
        sync = _make_sync(fetcher, clock)
        sync.activate(P1)
        await sync.settle()

        clock.now += 300
        sync.activate(P1)
        sync.activate(P2)
        await sync.settle()

        state = sync.get_state(P1)
        self.assertEqual(state.status, SyncStatus.SUCCESS)
        self.assertFalse(state.is_fetching)
        self.assertIsNotNone(state.result)

    async def test_reset_cancels_and_clears(self) -> None:
        """reset() drops in-flight fetches and cached entries."""
        fetcher = FakeFetcher(total=57, delays={1: 0.02})
        sync = _make_sync(fetcher)
        sync.activate(P1)
        sync.reset()
        await sync.settle()

        self.assertIsNone(sync.active_key)
        self.assertEqual(sync.get_state(P1).status, SyncStatus.IDLE)
        self.assertFalse(sync.is_in_flight(P1))


class TestPrefetch(unittest.IsolatedAsyncioTestCase):
    """Eager loading of the following page."""

    async def test_next_page_prefetched_without_loading_active(
        self,
    ) -> None:
        """Loading page 1 issues page 2 in the background."""
        fetcher = FakeFetcher(total=57, delays={2: 0.05})
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await asyncio.sleep(0.01)

        self.assertTrue(sync.is_in_flight(P2))
        active = sync.get_state(P1)
        self.assertEqual(active.status, SyncStatus.SUCCESS)
        self.assertFalse(active.is_fetching)
        self.assertEqual(sync.active_key, P1)

        await sync.settle()
        self.assertEqual(sync.get_state(P2).status, SyncStatus.SUCCESS)
        self.assertEqual(fetcher.calls_for(2), 1)
        # Prefetched pages do not chain further prefetches
        self.assertEqual(fetcher.calls_for(3), 0)

    async def test_no_prefetch_on_last_page(self) -> None:
        """A single-page listing prefetches nothing."""
        fetcher = FakeFetcher(total=10)
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(fetcher.calls, [P1])

    async def test_navigating_to_prefetched_page_is_instant(self) -> None:
        """A prefetched page is served fresh and prefetches its successor."""
        fetcher = FakeFetcher(total=57)
        sync = _make_sync(fetcher)
        sync.activate(P1)
        await sync.settle()

        state = sync.activate(P2)
        self.assertEqual(state.status, SyncStatus.SUCCESS)
        await sync.settle()
        self.assertEqual(fetcher.calls_for(2), 1)
        self.assertEqual(fetcher.calls_for(3), 1)


class TestSubscriptions(unittest.IsolatedAsyncioTestCase):
    """Observer registration for state transitions."""

    async def test_listener_sees_each_transition(self) -> None:
        """pending then success are both delivered."""
        sync = _make_sync(FakeFetcher(total=5))
        seen: list[SyncState] = []
        sync.subscribe(P1, lambda _key, state: seen.append(state))
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(
            [s.status for s in seen],
            [SyncStatus.PENDING, SyncStatus.SUCCESS],
        )

    async def test_unsubscribe_stops_notifications(self) -> None:
        """After unsubscribing, no further callbacks arrive."""
        sync = _make_sync(FakeFetcher(total=5))
        seen: list[SyncState] = []
        unsubscribe = sync.subscribe(
            P1, lambda _key, state: seen.append(state)
        )
        unsubscribe()
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(seen, [])

    async def test_clear_returns_purged_count(self) -> None:
        """clear() removes settled entries and reports how many."""
        sync = _make_sync(FakeFetcher(total=57))
        sync.activate(P1)
        await sync.settle()
        self.assertEqual(sync.clear(), 2)
        self.assertEqual(sync.get_state(P1).status, SyncStatus.IDLE)


if __name__ == "__main__":
    unittest.main()
