# src/services/pagination_controller.py

"""Page/limit state, navigation clamping and the view-state contract."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.models.page import PageRequest
from src.models.product import Product
from src.models.sync_state import ErrorInfo, SyncState, SyncStatus
from src.services.meta_reconciler import MetaReconciler
from src.services.page_window import PageLabel, PagerMode, visible_page_window
from src.services.sync_context import SyncContext

logger = logging.getLogger("catalog_browser.pagination")


@dataclass(frozen=True)
class ViewState:
    """Everything the presentation layer needs to draw one frame."""

    page: int
    limit: int
    effective_total: int
    effective_total_pages: int
    products: tuple[Product, ...] = field(
        default_factory=lambda: tuple[Product, ...]()
    )
    is_loading: bool = False
    is_fetching: bool = False
    is_refreshing: bool = False
    is_error: bool = False
    is_stale: bool = False
    is_placeholder: bool = False
    error: ErrorInfo | None = None

    @property
    def controls_disabled(self) -> bool:
        """Navigation is locked while loading, refreshing or failed."""
        return self.is_loading or self.is_fetching or self.is_error

    def page_window(self, mode: PagerMode = "desktop") -> list[PageLabel]:
        return visible_page_window(
            self.page, self.effective_total_pages, mode
        )

    def summary(self) -> str:
        """Header line such as ``'57 items found — page 2 of 6 (stale)'``."""
        head = (
            "Loading…"
            if self.is_loading
            else f"{self.effective_total} items found"
        )
        text = f"{head} — page {self.page} of {self.effective_total_pages}"
        return f"{text} (stale)" if self.is_stale else text


ViewListener = Callable[[ViewState], None]


class PaginationController:
    """Owns ``(page, limit)`` and turns intents into synchroniser calls."""

    def __init__(
        self,
        context: SyncContext,
        limit: int | None = None,
    ) -> None:
        self.settings = Settings()
        self._context = context
        self._sync = context.synchronizer
        self._meta = MetaReconciler()
        self._limit = self._validate_limit(
            self.settings.DEFAULT_LIMIT if limit is None else limit
        )
        self._page = 1
        # Last products shown for the active key, kept across navigation
        self._previous: tuple[Product, ...] = ()
        self._listeners: list[ViewListener] = []
        self._unsubscribe_key: Callable[[], None] | None = None

    # ── State ────────────────────────────────────────────

    @property
    def page(self) -> int:
        return self._page

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def key(self) -> PageRequest:
        return PageRequest(page=self._page, limit=self._limit)

    def view(self) -> ViewState:
        """Snapshot of the active query, with reconciled meta.

        While an uncached page loads, the previously shown products
        stay on screen (``is_placeholder``); only the very first load
        reports ``is_loading``.
        """
        state = self._sync.get_state(self.key)
        meta = self._meta.reconcile(state, self._limit)
        products = state.result.items if state.result else ()
        waiting = state.result is None and not state.is_error
        placeholder = waiting and bool(self._previous)
        if placeholder:
            products = self._previous
        return ViewState(
            page=self._page,
            limit=self._limit,
            effective_total=meta.total,
            effective_total_pages=meta.total_pages,
            products=products,
            is_loading=waiting and not placeholder,
            is_fetching=state.is_fetching,
            is_refreshing=state.is_refreshing,
            is_error=state.is_error,
            is_stale=self._meta.is_stale(state),
            is_placeholder=placeholder,
            error=state.error,
        )

    # ── Observers ────────────────────────────────────────

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Register *listener* for view changes; returns its remover."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            listener(view)

    def _observe(self, state: SyncState) -> None:
        """Record meta and products of a success on the active key."""
        if state.status is SyncStatus.SUCCESS and state.result is not None:
            self._meta.record(state.result, self._limit)
            self._previous = state.result.items

    def _on_state(self, key: PageRequest, state: SyncState) -> None:
        if key != self.key:
            return
        self._observe(state)
        self._emit()

    # ── Intents ──────────────────────────────────────────

    def start(self) -> ViewState:
        """Load the current page (call once the event loop runs)."""
        self._activate()
        return self.view()

    def go_to_page(self, page: int) -> int:
        """Navigate to *page*, clamped into the known page range.

        Returns the page now shown; a clamped target equal to the
        current page is a no-op.
        """
        last = self.view().effective_total_pages
        target = min(max(1, int(page)), last)
        if target == self._page:
            return self._page
        logger.info("Page %d -> %d (of %d)", self._page, target, last)
        self._page = target
        self._activate()
        return self._page

    def next_page(self) -> int:
        return self.go_to_page(self._page + 1)

    def prev_page(self) -> int:
        return self.go_to_page(self._page - 1)

    def set_limit(self, limit: int) -> None:
        """Switch page size; always returns to page 1."""
        self._limit = self._validate_limit(limit)
        self._page = 1
        self._meta.rescale(self._limit)
        logger.info("Page size set to %d", self._limit)
        self._activate()

    def retry(self) -> None:
        """Re-issue the current page request."""
        logger.info("Retrying %s", self.key)
        self._sync.refetch(self.key)
        self._emit()

    def reset(self) -> None:
        """Back to page 1 at the default size with an empty cache."""
        self._context.reset()
        self._meta.reset()
        self._previous = ()
        self._page = 1
        self._limit = self.settings.DEFAULT_LIMIT
        if self._unsubscribe_key is not None:
            self._unsubscribe_key()
            self._unsubscribe_key = None

    # ── Internals ────────────────────────────────────────

    def _validate_limit(self, limit: int) -> int:
        if limit not in self.settings.ALLOWED_LIMITS:
            raise ValueError(
                f"page size {limit} not in {self.settings.ALLOWED_LIMITS}"
            )
        return limit

    def _activate(self) -> None:
        if self._unsubscribe_key is not None:
            self._unsubscribe_key()
        self._unsubscribe_key = self._sync.subscribe(
            self.key, self._on_state
        )
        self._observe(self._sync.activate(self.key))
        self._emit()
