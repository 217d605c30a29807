# src/models/sync_state.py

"""Per-key synchronisation state and the meta shown by the pager."""

from dataclasses import dataclass, field
from enum import Enum

from src.models.page import PageResult


class SyncStatus(str, Enum):
    """Lifecycle of a single page query."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ErrorInfo:
    """Display-safe summary of a failed fetch."""

    kind: str
    message: str
    status: int | None = None
    exception: Exception | None = field(
        default=None, compare=False, repr=False
    )

    @classmethod
    def from_exception(cls, exc: Exception) -> "ErrorInfo":
        """Summarise *exc*, keeping the HTTP status when there is one."""
        return cls(
            kind=type(exc).__name__,
            message=str(exc) or type(exc).__name__,
            status=getattr(exc, "status", None),
            exception=exc,
        )


@dataclass(frozen=True)
class SyncState:
    """Snapshot of one page query.

    ``result`` survives a failed or in-progress refetch so that stale
    data can keep being displayed; ``fetched_at`` is the monotonic
    timestamp of the last successful fetch.
    """

    status: SyncStatus = SyncStatus.IDLE
    result: PageResult | None = None
    error: ErrorInfo | None = None
    fetched_at: float | None = None
    is_fetching: bool = False

    @property
    def is_loading(self) -> bool:
        """A fetch is running and there is nothing to show yet."""
        return self.is_fetching and self.result is None

    @property
    def is_refreshing(self) -> bool:
        """A background refetch is running behind cached data."""
        return self.is_fetching and self.result is not None

    @property
    def is_error(self) -> bool:
        return self.status is SyncStatus.ERROR


@dataclass(frozen=True)
class EffectiveMeta:
    """Total/total-pages currently shown by the pagination controls."""

    total: int = 0
    total_pages: int = 1
