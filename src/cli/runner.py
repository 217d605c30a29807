# src/cli/runner.py

"""Headless runners: print a catalog page, manage the asset cache."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from src.api.errors import CatalogError
from src.models.product import Product
from src.services.pagination_controller import (
    PaginationController,
    ViewState,
)
from src.services.sync_context import SyncContext
from src.storage.asset_cache import AssetCacheWorker

logger = logging.getLogger("catalog_browser.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _products_to_dicts(products: tuple[Product, ...]) -> list[dict[str, object]]:
    """Serialise a product page to plain dicts for JSON output."""
    return [
        {
            "id": p.id,
            "title": p.title,
            "price": p.price,
            "discountPercentage": p.discount_percentage,
            "discountedPrice": round(p.discounted_price, 2),
            "category": p.category,
            "brand": p.brand,
            "rating": p.rating,
            "thumbnail": p.thumbnail,
            "images": p.images,
            "shippingInformation": p.shipping_information,
        }
        for p in products
    ]


def _print_table(view: ViewState) -> None:
    """Render a Rich table of the page to stdout."""
    table = Table(
        title=f"Products — page {view.page} of {view.effective_total_pages}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Off", justify="right")
    table.add_column("Category", style="magenta")
    table.add_column("Brand")
    table.add_column("Rating", justify="center")

    first = (view.page - 1) * view.limit
    for idx, p in enumerate(view.products, first + 1):
        table.add_row(
            str(idx),
            p.title[:50],
            f"${p.discounted_price:,.2f}",
            f"{p.discount_badge}%" if p.discount_badge > 0 else "—",
            p.category,
            p.brand or "—",
            p.rating_label,
        )

    Console().print(table)


async def cli_browse(
    page: int,
    limit: int,
    output_format: str,
    context: SyncContext | None = None,
) -> int:
    """Fetch one page headlessly and print it (0=ok, 1=fail)."""
    owns_context = context is None
    ctx = context or SyncContext()
    controller = PaginationController(ctx, limit=limit)
    try:
        controller.start()
        await ctx.synchronizer.settle()
        # Totals are unknown when the first page failed
        if page != controller.page and not controller.view().is_error:
            landed = controller.go_to_page(page)
            if landed != page:
                _err.print(
                    f"[yellow]Page {page} out of range, "
                    f"showing page {landed}[/yellow]"
                )
            await ctx.synchronizer.settle()
        view = controller.view()
    finally:
        if owns_context:
            await ctx.aclose()

    if view.is_error:
        message = view.error.message if view.error else "unknown error"
        logger.error("Headless fetch failed: %s", message)
        _err.print(f"[red]Error: {message}[/red]")
        return 1

    _err.print(f"[green]✓ {view.summary()}[/green]")

    if output_format == "table":
        _print_table(view)
    else:
        json.dump(
            {
                "page": view.page,
                "limit": view.limit,
                "total": view.effective_total,
                "totalPages": view.effective_total_pages,
                "products": _products_to_dicts(view.products),
            },
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")

    return 0


async def run_sync_assets(worker: AssetCacheWorker | None = None) -> int:
    """Install the current asset cache version, then drop old ones."""
    worker = worker or AssetCacheWorker()
    _err.print(
        f"[bold]Pre-caching {len(worker.paths)} assets "
        f"into {worker.cache_name}...[/bold]"
    )
    try:
        count = await worker.install()
    except CatalogError as exc:
        logger.error("Asset sync failed: %s", exc, exc_info=True)
        _err.print(f"[red]Asset sync failed: {exc}[/red]")
        return 1
    finally:
        await worker.aclose()

    removed = worker.activate()
    _err.print(f"[green]✓ Cached {count} assets[/green]")
    if removed:
        _err.print(f"[dim]Removed old caches: {', '.join(removed)}[/dim]")
    return 0


async def run_fetch_asset(
    path: str,
    worker: AssetCacheWorker | None = None,
) -> int:
    """Fetch one asset cache-first and report where it came from."""
    worker = worker or AssetCacheWorker()
    try:
        resp = await worker.fetch(path)
    except CatalogError as exc:
        logger.error("Asset fetch failed for %s: %s", path, exc)
        _err.print(f"[red]Asset fetch failed: {exc}[/red]")
        return 1
    finally:
        await worker.aclose()

    origin = "cache" if resp.from_cache else "network"
    _err.print(
        f"[dim]{path}: HTTP {resp.status}, {len(resp.body):,} bytes "
        f"from {origin}[/dim]"
    )
    return 0 if resp.ok else 1
