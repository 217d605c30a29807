# src/services/page_window.py

"""Windowed page-number labels for the pager (desktop and mobile)."""

from typing import Literal

ELLIPSIS = "…"

PageLabel = int | str
PagerMode = Literal["desktop", "mobile"]


def _fixed_window(
    current: int, total: int, mode: PagerMode
) -> list[PageLabel]:
    """Raw fixed-width window before gap normalisation."""
    if mode == "mobile":
        if total <= 3:
            return list(range(1, total + 1))
        if current <= 2:
            return [1, 2, 3, ELLIPSIS]
        if current >= total - 1:
            return [ELLIPSIS, total - 2, total - 1, total]
        return [1, ELLIPSIS, current, ELLIPSIS, total]

    if total <= 5:
        return list(range(1, total + 1))
    if current <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total]
    if current >= total - 2:
        return [1, ELLIPSIS, total - 3, total - 2, total - 1, total]
    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


def _normalise(labels: list[PageLabel], total: int) -> list[PageLabel]:
    """Fill one-page gaps, drop empty gaps and repeated ellipses."""
    out: list[PageLabel] = []
    previous = 0
    for idx, label in enumerate(labels):
        if label != ELLIPSIS:
            out.append(label)
            previous = int(label)
            continue
        following = next(
            (int(x) for x in labels[idx + 1:] if x != ELLIPSIS),
            total + 1,
        )
        hidden = following - previous - 1
        if hidden == 1:
            out.append(previous + 1)
            previous += 1
        elif hidden > 1 and (not out or out[-1] != ELLIPSIS):
            out.append(ELLIPSIS)
    return out


def visible_page_window(
    current: int,
    total: int,
    mode: PagerMode = "desktop",
) -> list[PageLabel]:
    """Ordered page labels to render, ``ELLIPSIS`` marking a gap.

    ``current`` is clamped into ``[1, total]`` and ``total`` is at
    least 1, so the result is never empty.

    >>> visible_page_window(5, 10)
    [1, '…', 4, 5, 6, '…', 10]
    >>> visible_page_window(5, 10, "mobile")
    [1, '…', 5, '…', 10]
    """
    total = max(1, total)
    current = min(max(1, current), total)
    return _normalise(_fixed_window(current, total, mode), total)
