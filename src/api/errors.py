# src/api/errors.py

"""Error taxonomy for catalog fetches and the asset cache."""


class CatalogError(Exception):
    """Base class for every recoverable catalog failure."""


class NetworkError(CatalogError):
    """Connection or transport failure before a response arrived."""


class HttpError(CatalogError):
    """The server answered with a non-success status code."""

    def __init__(self, status: int, url: str = "") -> None:
        self.status = status
        self.url = url
        super().__init__(f"HTTP {status}")


class ResponseFormatError(CatalogError):
    """The response body is not the expected ``{products, total}`` JSON."""


class AbortedError(CatalogError):
    """The request was cancelled because a newer one superseded it."""


class AssetInstallError(CatalogError):
    """Pre-caching the static asset list failed as a whole."""
