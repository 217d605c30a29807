# tests/test_app.py

"""Smoke tests for the TUI application using Textual's Pilot."""

import unittest
from typing import Any, cast

from textual.containers import Vertical
from textual.widgets import (
    Button,
    DataTable,
    LoadingIndicator,
    Select,
    Static,
)

from src.api.errors import HttpError
from src.models.page import PageRequest
from src.services.sync_context import SyncContext
from src.ui.app import CatalogBrowserApp, status_label
from tests.fakes import FakeFetcher


def _make_app(fetcher: FakeFetcher | None = None) -> CatalogBrowserApp:
    return CatalogBrowserApp(
        context=SyncContext(fetcher=fetcher or FakeFetcher(total=57))
    )


def _page_buttons(app: CatalogBrowserApp) -> list[str]:
    return [
        b.name
        for b in app.query("#pager Button").results(Button)
        if b.name and b.name.startswith("page:")
    ]


class TestCatalogBrowserApp(unittest.IsolatedAsyncioTestCase):
    """Smoke tests for the Textual TUI."""

    async def _settle(self, app: CatalogBrowserApp, pilot: Any) -> None:
        await app.context.synchronizer.settle()
        await pilot.pause()

    async def test_app_composes_without_crash(self) -> None:
        """Verify the app starts and renders all widgets."""
        app = _make_app()
        async with app.run_test() as pilot:
            app.query_one("#products_table", DataTable)
            app.query_one("#limit_select", Select)
            app.query_one("#status_pill", Static)
            app.query_one("#summary", Static)
            app.query_one("#error_box", Vertical)
            await self._settle(app, pilot)

    async def test_first_page_populates_table(self) -> None:
        app = _make_app()
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            table = cast(
                DataTable[Any], app.query_one("#products_table", DataTable)
            )
            self.assertEqual(table.row_count, 10)
            self.assertEqual(table.get_row_at(0)[0], "Product 1")
            self.assertFalse(
                app.query_one("#loader", LoadingIndicator).display
            )
            assert app.view is not None
            self.assertEqual(
                app.view.summary(), "57 items found — page 1 of 6"
            )

    async def test_pager_shows_window(self) -> None:
        """Six pages fit without an ellipsis on a desktop-width pager."""
        app = _make_app()
        async with app.run_test(size=(120, 40)) as pilot:
            await self._settle(app, pilot)
            self.assertEqual(app.pager_mode, "desktop")
            self.assertEqual(
                _page_buttons(app), [f"page:{n}" for n in range(1, 7)]
            )

    async def test_narrow_terminal_uses_mobile_pager(self) -> None:
        app = _make_app(FakeFetcher(total=100))
        async with app.run_test(size=(60, 30)) as pilot:
            await self._settle(app, pilot)
            self.assertEqual(app.pager_mode, "mobile")
            self.assertEqual(
                _page_buttons(app), ["page:1", "page:2", "page:3"]
            )

    async def test_next_page_action(self) -> None:
        app = _make_app()
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            app.action_next_page()
            await self._settle(app, pilot)
            self.assertEqual(app.controller.page, 2)
            table = cast(
                DataTable[Any], app.query_one("#products_table", DataTable)
            )
            self.assertEqual(table.get_row_at(0)[0], "Product 11")

    async def test_page_button_navigates(self) -> None:
        app = _make_app()
        async with app.run_test(size=(120, 40)) as pilot:
            await self._settle(app, pilot)
            button = next(
                b
                for b in app.query("#pager Button").results(Button)
                if b.name == "page:4"
            )
            app.on_button_pressed(Button.Pressed(button))
            await self._settle(app, pilot)
            self.assertEqual(app.controller.page, 4)

    async def test_limit_select_changes_page_size(self) -> None:
        app = _make_app()
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            app.query_one("#limit_select", Select).value = 20
            await pilot.pause()
            await self._settle(app, pilot)
            self.assertEqual(app.controller.limit, 20)
            table = cast(
                DataTable[Any], app.query_one("#products_table", DataTable)
            )
            self.assertEqual(table.row_count, 20)

    async def test_error_shows_retry_box(self) -> None:
        """A failing first page hides the table and offers retry."""
        fetcher = FakeFetcher(total=57)
        fetcher.failures[PageRequest(1, 10)] = [
            HttpError(500) for _ in range(3)
        ]
        app = _make_app(fetcher)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            self.assertTrue(app.query_one("#error_box", Vertical).display)
            self.assertFalse(
                app.query_one("#products_table", DataTable).display
            )
            assert app.view is not None
            self.assertEqual(status_label(app.view), "● Error")
            self.assertTrue(app.view.controls_disabled)

            app.action_retry()
            await self._settle(app, pilot)
            self.assertFalse(app.query_one("#error_box", Vertical).display)
            self.assertEqual(app.controller.view().products[0].id, 1)

    async def test_navigation_locked_while_error(self) -> None:
        fetcher = FakeFetcher(total=57)
        fetcher.failures[PageRequest(1, 10)] = [
            HttpError(500) for _ in range(3)
        ]
        app = _make_app(fetcher)
        async with app.run_test() as pilot:
            await self._settle(app, pilot)
            app.action_next_page()
            await pilot.pause()
            self.assertEqual(app.controller.page, 1)

    async def test_invalidate_cache_action(self) -> None:
        app = _make_app()
        async with app.run_test(notifications=True) as pilot:
            await self._settle(app, pilot)
            sync = app.context.synchronizer
            self.assertIsNotNone(
                sync.get_state(PageRequest(2, 10)).result
            )
            app.action_invalidate_cache()
            await pilot.pause()
            self.assertIsNone(sync.get_state(PageRequest(2, 10)).result)


if __name__ == "__main__":
    unittest.main()
