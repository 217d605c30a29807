# src/ui/app.py

"""Terminal UI for browsing the paginated product catalog."""

import logging
from collections.abc import Callable
from typing import cast

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    LoadingIndicator,
    Select,
    Static,
)

from src.config.settings import Settings
from src.models.product import Product
from src.services.page_window import ELLIPSIS, PagerMode
from src.services.pagination_controller import (
    PaginationController,
    ViewState,
)
from src.services.sync_context import SyncContext

logger = logging.getLogger("catalog_browser.ui")


def status_label(view: ViewState) -> str:
    """Text of the status pill."""
    if view.is_error:
        return "● Error"
    if view.is_fetching:
        return "● Updating…"
    return "● Up to date"


class CatalogBrowserApp(App[object]):
    """Terminal UI for browsing the paginated product catalog."""

    CSS_PATH = "styles.tcss"
    TITLE = "Catalog Browser"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("left", "prev_page", "Prev"),
        Binding("right", "next_page", "Next"),
        Binding("r", "retry", "Retry"),
        Binding("i", "invalidate_cache", "Invalidate Cache"),
    ]

    def __init__(self, context: SyncContext | None = None) -> None:
        super().__init__()
        self.settings = Settings()
        self.context = context or SyncContext()
        self.controller = PaginationController(self.context)
        self.view: ViewState | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        """Build the widget tree for the TUI."""
        limit_options = [
            (f"{n} per page", n) for n in self.settings.ALLOWED_LIMITS
        ]

        yield Header()
        yield Container(
            Horizontal(
                Static("🛍  Catalog Browser", id="title"),
                Select(
                    limit_options,
                    value=self.controller.limit,
                    allow_blank=False,
                    id="limit_select",
                ),
                Static(id="status_pill"),
                id="toolbar",
            ),
            Static("Loading…", id="summary"),
            LoadingIndicator(id="loader"),
            Vertical(
                Static("Something went wrong", id="error_title"),
                Static("", id="error_message"),
                Button("Retry", variant="error", id="retry_btn"),
                id="error_box",
            ),
            cast(
                DataTable[str | Text],
                DataTable(
                    id="products_table",
                    zebra_stripes=True,
                    cursor_type="row",
                ),
            ),
            Horizontal(id="pager"),
            Static(
                f"Data: {self.context_source()}", id="data_source"
            ),
            id="main_container",
        )
        yield Footer()

    def context_source(self) -> str:
        base = getattr(self.context.fetcher, "base_url", None)
        return str(base or self.settings.API_BASE)

    def on_mount(self) -> None:
        """Configure the table, then start loading the first page."""
        table = cast(
            DataTable[str | Text],
            self.query_one("#products_table", DataTable),
        )
        table.add_columns(
            "Title",
            "Price",
            "Discount",
            "Category",
            "Brand",
            "Rating",
            "Shipping",
        )
        self._unsubscribe = self.controller.subscribe(self.render_view)
        self.render_view(self.controller.start())

    async def on_unmount(self) -> None:
        """Drop the view subscription and release the HTTP session."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.context.aclose()
        logger.info("Catalog browser UI closed")

    # ── Rendering ────────────────────────────────────────

    @property
    def pager_mode(self) -> PagerMode:
        if self.size.width < self.settings.MOBILE_BREAKPOINT:
            return "mobile"
        return "desktop"

    def render_view(self, view: ViewState) -> None:
        """Apply a ViewState to every widget."""
        self.view = view

        pill = self.query_one("#status_pill", Static)
        pill.update(status_label(view))
        pill.set_class(view.is_error, "-error")
        pill.set_class(
            view.is_fetching and not view.is_error, "-fetching"
        )

        self.query_one("#summary", Static).update(view.summary())
        self.query_one("#loader", LoadingIndicator).display = (
            view.is_loading
        )

        error_box = self.query_one("#error_box", Vertical)
        error_box.display = view.is_error
        if view.error is not None:
            self.query_one("#error_message", Static).update(
                view.error.message
            )

        table = cast(
            DataTable[str | Text],
            self.query_one("#products_table", DataTable),
        )
        table.display = not view.is_error and not view.is_loading
        self.populate_table(view.products)

        self.query_one("#limit_select", Select).disabled = (
            view.controls_disabled
        )
        self.render_pager(view)

    def populate_table(self, products: tuple[Product, ...]) -> None:
        """Fill the DataTable with the current page's products."""
        table = cast(
            DataTable[str | Text],
            self.query_one("#products_table", DataTable),
        )
        table.clear()
        for p in products:
            price = Text(f"${p.discounted_price:,.2f}", style="bold")
            if p.discount_badge > 0:
                price.append(f"  ${p.price:,.2f}", style="dim strike")
            table.add_row(
                p.title[:60],
                price,
                f"{p.discount_badge}%" if p.discount_badge > 0 else "",
                p.category,
                p.brand,
                f"⭐ {p.rating_label}",
                p.shipping_information,
            )

    def render_pager(self, view: ViewState) -> None:
        """Rebuild prev/next and the windowed page buttons."""
        pager = self.query_one("#pager", Horizontal)
        pager.remove_children()
        disabled = view.controls_disabled
        buttons: list[Button | Static] = [
            Button(
                "‹",
                name="prev",
                disabled=disabled or view.page <= 1,
                classes="pager-arrow",
            )
        ]
        for label in view.page_window(self.pager_mode):
            if label == ELLIPSIS:
                buttons.append(Static(ELLIPSIS, classes="pager-gap"))
                continue
            buttons.append(
                Button(
                    str(label),
                    name=f"page:{label}",
                    disabled=disabled,
                    variant=(
                        "primary" if label == view.page else "default"
                    ),
                    classes="pager-page",
                )
            )
        buttons.append(
            Button(
                "›",
                name="next",
                disabled=(
                    disabled or view.page >= view.effective_total_pages
                ),
                classes="pager-arrow",
            )
        )
        pager.mount(*buttons)

    def on_resize(self, event: events.Resize) -> None:
        """Switch between desktop and mobile pager windows."""
        if self.view is not None:
            self.render_pager(self.view)

    # ── Intents ──────────────────────────────────────────

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Route retry and pager clicks to the controller."""
        button = event.button
        if button.id == "retry_btn":
            self.action_retry()
        elif button.name == "prev":
            self.action_prev_page()
        elif button.name == "next":
            self.action_next_page()
        elif button.name and button.name.startswith("page:"):
            self.controller.go_to_page(int(button.name.split(":", 1)[1]))

    def on_select_changed(self, event: Select.Changed) -> None:
        """Apply a new page size from the dropdown."""
        if event.select.id != "limit_select":
            return
        if not isinstance(event.value, int):
            return
        if event.value == self.controller.limit:
            return
        self.controller.set_limit(event.value)

    def _navigation_locked(self) -> bool:
        return self.view is not None and self.view.controls_disabled

    def action_prev_page(self) -> None:
        """Go to the previous page."""
        if not self._navigation_locked():
            self.controller.prev_page()

    def action_next_page(self) -> None:
        """Go to the next page."""
        if not self._navigation_locked():
            self.controller.next_page()

    def action_retry(self) -> None:
        """Re-issue the current page request."""
        self.controller.retry()

    def action_invalidate_cache(self) -> None:
        """Purge cached pages; the next navigation fetches fresh data."""
        count = self.context.synchronizer.clear()
        logger.info("User invalidated query cache (%d entries)", count)
        self.notify(f"Cache cleared ({count} entries)")
