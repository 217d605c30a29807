# src/storage/asset_cache.py

"""Versioned on-disk cache for static assets (cache-first fetch)."""

import asyncio
import hashlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from curl_cffi.requests import AsyncSession

from src.api.errors import AssetInstallError, NetworkError
from src.config.settings import Settings

logger = logging.getLogger("catalog_browser.assets")


@dataclass
class AssetResponse:
    """An asset body and where it came from."""

    path: str
    status: int
    body: bytes
    from_cache: bool

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class AssetCacheWorker:
    """Pre-caches a fixed asset list and serves it cache-first.

    Each cache lives in ``<cache_root>/<prefix>-<version>``; bumping
    the version and calling :meth:`install` then :meth:`activate`
    replaces every older copy.  Network responses fetched on a cache
    miss are handed back but never written to the cache.
    """

    def __init__(
        self,
        cache_root: Path | None = None,
        origin: str | None = None,
        version: str | None = None,
        paths: list[str] | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        self.settings = Settings()
        self.cache_root = cache_root or self.settings.ASSET_CACHE_DIR
        self.origin = (origin or self.settings.ASSET_ORIGIN).rstrip("/")
        self.version = version or self.settings.ASSET_CACHE_VERSION
        self.paths = list(
            self.settings.PRECACHE_PATHS if paths is None else paths
        )
        self._session = session

    @property
    def cache_name(self) -> str:
        return f"{self.settings.ASSET_CACHE_PREFIX}-{self.version}"

    @property
    def cache_dir(self) -> Path:
        return self.cache_root / self.cache_name

    @staticmethod
    def _entry_name(path: str) -> str:
        return hashlib.sha256(path.encode("utf-8")).hexdigest()

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            self._session = AsyncSession(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        return self._session

    async def _download(self, path: str) -> AssetResponse:
        url = f"{self.origin}{path}"
        try:
            resp: Any = await self._get_session().get(
                url, timeout=self.settings.REQUEST_TIMEOUT
            )
        except Exception as exc:
            logger.warning(
                "Asset request error for %s: %s", url, exc, exc_info=True
            )
            raise NetworkError(str(exc) or type(exc).__name__) from exc
        return AssetResponse(
            path=path,
            status=resp.status_code,
            body=bytes(resp.content),
            from_cache=False,
        )

    async def install(self) -> int:
        """Download every listed path into the current cache.

        All-or-nothing: on any failure the previous copy of this
        version is left untouched and ``AssetInstallError`` is raised.
        Returns the number of cached assets.
        """
        results = await asyncio.gather(
            *(self._download(p) for p in self.paths),
            return_exceptions=True,
        )
        failures: list[str] = []
        responses: list[AssetResponse] = []
        for path, res in zip(self.paths, results):
            if isinstance(res, BaseException):
                failures.append(f"{path}: {res}")
            elif not res.ok:
                failures.append(f"{path}: HTTP {res.status}")
            else:
                responses.append(res)
        if failures:
            logger.error("Asset install failed: %s", "; ".join(failures))
            raise AssetInstallError(
                f"{len(failures)} of {len(self.paths)} assets failed: "
                + "; ".join(failures)
            )

        self.cache_root.mkdir(parents=True, exist_ok=True)
        staging = self.cache_root / f".{self.cache_name}.staging"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir()
        for res in responses:
            (staging / self._entry_name(res.path)).write_bytes(res.body)

        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)
        staging.rename(self.cache_dir)
        logger.info(
            "Installed %d assets into %s", len(self.paths), self.cache_name
        )
        return len(self.paths)

    def activate(self) -> list[str]:
        """Delete every cache directory except the current version.

        Returns the names of the removed caches.
        """
        if not self.cache_root.exists():
            return []
        removed: list[str] = []
        for entry in sorted(self.cache_root.iterdir()):
            if entry.is_dir() and entry.name != self.cache_name:
                shutil.rmtree(entry)
                removed.append(entry.name)
        if removed:
            logger.info("Removed old asset caches: %s", removed)
        return removed

    def match(self, path: str) -> bytes | None:
        """Cached body for *path*, or ``None`` on a miss."""
        entry = self.cache_dir / self._entry_name(path)
        if entry.is_file():
            return entry.read_bytes()
        return None

    async def fetch(self, path: str) -> AssetResponse:
        """Serve *path* from cache, else from the network.

        Raises ``NetworkError`` when there is no cached copy and the
        network request fails.
        """
        cached = self.match(path)
        if cached is not None:
            logger.debug("Asset cache hit for %s", path)
            return AssetResponse(
                path=path, status=200, body=cached, from_cache=True
            )
        logger.debug("Asset cache miss for %s", path)
        return await self._download(path)

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
