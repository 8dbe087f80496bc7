"""
=============================================================================
RESPONSE HEADERS
=============================================================================

Two structures, used one after the other:

    HeaderEntry list                         HeaderTable
    (built line by line, in order)           (built once, read-only)

    content-type: text/html                  cache-control: no-cache, private
    x-a: 1                   ── sort ──►     content-type: text/html
    cache-control: no-cache  ── merge ─►     x-a: 1, 2
    x-a: 2
    cache-control: private

Header names are case-insensitive (RFC 7230), so they are lowercased the
moment they are parsed and every lookup lowercases its key too.

Repeated headers mean the same thing as one header whose value is the
comma-separated list of the individual values, so the table keeps exactly
one entry per name, values joined with ", " in the order they arrived.

=============================================================================
"""

from bisect import bisect_left
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple


@dataclass
class HeaderEntry:
    """
    One header as received. The value grows while continuation lines
    (obsolete line folding) are appended to it.
    """

    name: str
    value: str

    def append(self, fragment: str) -> None:
        """Fold a continuation fragment onto the value after a single space."""
        self.value = f"{self.value} {fragment}"


def normalize_name(name: str) -> str:
    return name.strip().lower()


class HeaderTable(Mapping):
    """
    Deduplicated, sorted, case-insensitive view of the response headers.

    Behaves like a read-only dict:

        >>> table = HeaderTable.from_entries([HeaderEntry("x-a", "1"),
        ...                                   HeaderEntry("x-a", "2")])
        >>> table.get("X-A")
        '1, 2'
        >>> table.get("missing") is None
        True
    """

    __slots__ = ("_names", "_values")

    def __init__(self, names: List[str], values: List[str]):
        self._names = names
        self._values = values

    @classmethod
    def from_entries(cls, entries: Iterable[HeaderEntry]) -> "HeaderTable":
        """
        Sort by name and merge duplicates.

        =====================================================================
        MERGING
        =====================================================================

        The sort is stable, so equal names stay in arrival order. Walking
        the sorted list, whenever entry i and entry i + 1 share a name,
        i absorbs i + 1 and i + 1 is removed. Index i is then checked again
        against its new neighbour before moving on: a third "x-a" is now
        adjacent and must be merged too.

        =====================================================================
        """
        merged: List[Tuple[str, str]] = sorted(
            ((entry.name, entry.value) for entry in entries),
            key=lambda item: item[0],
        )

        i = 0
        while i < len(merged) - 1:
            name, value = merged[i]
            next_name, next_value = merged[i + 1]
            if name == next_name:
                merged[i] = (name, f"{value}, {next_value}")
                del merged[i + 1]
                continue  # same i, new neighbour
            i += 1

        return cls([name for name, _ in merged], [value for _, value in merged])

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def _index(self, name: str) -> int:
        key = normalize_name(name)
        i = bisect_left(self._names, key)
        if i < len(self._names) and self._names[i] == key:
            return i
        return -1

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Value for name, or default when the header is absent."""
        i = self._index(name)
        return self._values[i] if i >= 0 else default

    def __getitem__(self, name: str) -> str:
        i = self._index(name)
        if i < 0:
            raise KeyError(name)
        return self._values[i]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._index(name) >= 0

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"HeaderTable({dict(self.items())!r})"
