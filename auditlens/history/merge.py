"""Stream Merger: combine pre-sorted sequences into one sorted sequence."""

from collections.abc import Callable, Sequence
from typing import TypeVar

T = TypeVar("T")

Comparer = Callable[[T | None, T | None], int]


def merge_sorted(streams: Sequence[Sequence[T]], comparer: Comparer) -> list[T]:
    """Merge sequences already sorted consistently with ``comparer``.

    The first stream seeds the accumulator and each later stream is merged
    into it with a two-pointer walk. At every step the element that compares
    greater-or-equal is taken from the accumulator first, so the output is
    descending under ``comparer`` and ties keep the earlier stream's element
    first. Once one side is exhausted the rest of the other is appended
    without further comparisons. Inputs are never re-sorted.

    Args:
        streams: Sequences sorted descending under ``comparer``
        comparer: Three-way comparison returning <0, 0 or >0

    Returns:
        A new list with every element of every stream
    """
    if not streams:
        return []

    merged: list[T] = list(streams[0] or [])
    for stream in streams[1:]:
        if not stream:
            continue

        result: list[T] = []
        i = j = 0
        while i < len(merged) or j < len(stream):
            if i < len(merged) and (
                j >= len(stream) or comparer(merged[i], stream[j]) >= 0
            ):
                result.append(merged[i])
                i += 1
            else:
                result.append(stream[j])
                j += 1
        merged = result

    return merged
