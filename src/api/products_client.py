# src/api/products_client.py

"""Async client for the paginated products REST endpoint."""

import asyncio
import json
import logging
from typing import Any, cast

from curl_cffi.requests import AsyncSession

from src.api.errors import (
    AbortedError,
    HttpError,
    NetworkError,
    ResponseFormatError,
)
from src.config.settings import Settings
from src.models.page import PageRequest, PageResult
from src.models.product import Product
from src.services.cancellation import CancellationToken


class ProductsClient:
    """Fetch adapter for ``GET {base}?limit=N&skip=M``.

    The endpoint answers with ``{"products": [...], "total": int}``.
    Failures surface as typed :mod:`src.api.errors` exceptions; this
    layer never retries, that policy belongs to the synchroniser.
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        self.logger = logging.getLogger("catalog_browser.api")
        self.settings = Settings()
        self.base_url = base_url or self.settings.API_BASE
        self._session = session

    def _get_session(self) -> AsyncSession:
        """Create the HTTP session on first use, inside the running loop."""
        if self._session is None:
            self._session = AsyncSession(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        return self._session

    def build_url(self, page: int, limit: int) -> str:
        """URL for one page; raises ``ValueError`` on an invalid request."""
        request = PageRequest(page=page, limit=limit)
        return (
            f"{self.base_url}?limit={request.limit}"
            f"&skip={request.skip}"
        )

    @staticmethod
    def _parse_item(item: dict[str, Any]) -> Product:
        """Parse a single API item into a Product."""
        if "id" not in item:
            raise ResponseFormatError("product without an 'id'")
        images: list[Any] = item.get("images") or []
        return Product(
            id=int(item["id"]),
            title=str(item.get("title", "N/A")),
            price=float(item.get("price", 0) or 0),
            discount_percentage=float(
                item.get("discountPercentage", 0) or 0
            ),
            category=str(item.get("category", "") or ""),
            brand=str(item.get("brand", "") or ""),
            rating=float(item.get("rating", 0) or 0),
            thumbnail=str(item.get("thumbnail", "") or ""),
            images=[str(i) for i in images],
            shipping_information=str(
                item.get("shippingInformation", "") or ""
            ),
        )

    @classmethod
    def parse_payload(cls, text: str) -> PageResult:
        """Decode and validate a response body into a PageResult."""
        try:
            data: Any = json.loads(text)
        except ValueError as exc:
            raise ResponseFormatError(
                f"invalid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ResponseFormatError("payload is not an object")
        payload = cast(dict[str, Any], data)
        items = payload.get("products")
        total = payload.get("total")
        if not isinstance(items, list):
            raise ResponseFormatError("'products' is not a list")
        if not isinstance(total, int) or isinstance(total, bool):
            raise ResponseFormatError("'total' is not an integer")
        try:
            products = tuple(
                cls._parse_item(cast(dict[str, Any], item))
                for item in cast(list[Any], items)
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise ResponseFormatError(
                f"malformed product: {exc}"
            ) from exc
        return PageResult(items=products, total=max(total, 0))

    async def _get(
        self,
        url: str,
        token: CancellationToken,
    ) -> Any:
        """GET *url*, abandoning the wait as soon as *token* fires."""
        headers: dict[str, str] = {**self.settings.DEFAULT_HEADERS}
        request = asyncio.ensure_future(
            self._get_session().get(
                url,
                headers=headers,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        )
        aborted = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait(
                {request, aborted},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not request.done():
                raise AbortedError(
                    token.reason or "request cancelled"
                )
            return request.result()
        finally:
            aborted.cancel()
            if not request.done():
                request.cancel()

    async def fetch(
        self,
        page: int,
        limit: int,
        token: CancellationToken | None = None,
    ) -> PageResult:
        """Fetch one page of products."""
        token = token or CancellationToken()
        url = self.build_url(page, limit)
        if token.cancelled:
            raise AbortedError(token.reason or "request cancelled")

        self.logger.debug("GET %s", url)
        try:
            resp = await self._get(url, token)
        except AbortedError:
            self.logger.debug("Aborted %s", url)
            raise
        except Exception as exc:
            self.logger.warning(
                "Request error for %s: %s", url, exc, exc_info=True
            )
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        if not 200 <= resp.status_code < 300:
            self.logger.warning(
                "HTTP %d for %s", resp.status_code, url
            )
            raise HttpError(resp.status_code, url)

        result = self.parse_payload(resp.text)
        self.logger.debug(
            "Page %d (limit %d): %d items of %d",
            page,
            limit,
            len(result.items),
            result.total,
        )
        return result

    async def aclose(self) -> None:
        """Close the underlying HTTP session, if one was opened."""
        if self._session is not None:
            await self._session.close()
            self._session = None
