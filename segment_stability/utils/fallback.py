"""Ordered "first success" combinator for schema-fallback reads.

Each strategy is a ``(label, callable)`` pair. Strategies run in order; the
first one that returns without raising (and passes ``accept``) wins.
"""
from __future__ import annotations

import itertools
import logging
from typing import Callable, Iterable, Iterator, Optional, Sequence, Tuple, TypeVar

from ..errors import SourceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Strategy = Tuple[str, Callable[[], T]]


def first_success(
    strategies: Sequence[Strategy],
    *,
    accept: Optional[Callable[[T], bool]] = None,
    strict: bool = False,
    what: str = "read",
) -> Optional[Tuple[str, T]]:
    """Return ``(label, result)`` of the first strategy that succeeds.

    Non-strict: returns None when nothing succeeds.
    Strict: raises SourceUnavailableError chained to the last error.
    """
    last_error: Optional[BaseException] = None
    for label, attempt in strategies:
        try:
            result = attempt()
        except Exception as e:
            last_error = e
            logger.warning("%s via %s failed, trying fallback: %s", what, label, e)
            continue
        if accept is not None and not accept(result):
            logger.debug("%s via %s returned nothing usable", what, label)
            continue
        return label, result

    if strict:
        labels = ", ".join(label for label, _ in strategies)
        raise SourceUnavailableError(f"All strategies failed for {what} ({labels})") from last_error
    return None


def primed(records: Iterable[T]) -> Iterator[T]:
    """Pull the first item of a lazy stream now, so its first read error
    surfaces to the caller instead of during consumption.
    """
    it = iter(records)
    try:
        first = next(it)
    except StopIteration:
        return iter(())
    return itertools.chain([first], it)
