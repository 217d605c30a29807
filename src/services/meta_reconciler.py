# src/services/meta_reconciler.py

"""Keeps the pager's total/total-pages stable across failed fetches."""

import logging

from src.models.page import PageResult, total_pages
from src.models.sync_state import EffectiveMeta, SyncState, SyncStatus

logger = logging.getLogger("catalog_browser.meta")


class MetaReconciler:
    """Tracks the last known-good :class:`EffectiveMeta`.

    A success records its meta; any other state (error, or loading
    with nothing cached) reads back the last recorded value, so the
    pager neither jumps nor collapses to a single page while a
    request is failing.
    """

    def __init__(self) -> None:
        self._meta = EffectiveMeta()

    @property
    def meta(self) -> EffectiveMeta:
        return self._meta

    def record(self, result: PageResult, limit: int) -> EffectiveMeta:
        """Store the meta of a successful page."""
        meta = EffectiveMeta(
            total=result.total,
            total_pages=result.total_pages(limit),
        )
        if meta != self._meta:
            logger.debug("Effective meta now %s", meta)
        self._meta = meta
        return meta

    def reconcile(self, state: SyncState, limit: int) -> EffectiveMeta:
        """Meta to display for the active query *state*."""
        if state.status is SyncStatus.SUCCESS and state.result is not None:
            return self.record(state.result, limit)
        return self._meta

    @staticmethod
    def is_stale(state: SyncState) -> bool:
        """Whether the displayed meta is a frozen copy."""
        return state.status is SyncStatus.ERROR

    def rescale(self, limit: int) -> EffectiveMeta:
        """Recompute total pages for a new page size."""
        self._meta = EffectiveMeta(
            total=self._meta.total,
            total_pages=total_pages(self._meta.total, limit),
        )
        return self._meta

    def reset(self) -> None:
        self._meta = EffectiveMeta()
