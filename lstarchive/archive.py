"""Archives: ordered containers of optional items, and the item base class."""

from __future__ import annotations

import copy
from enum import IntEnum
from typing import Iterator, Iterable, Optional


class BobType(IntEnum):
    """Type tags of archive items as stored in the archive files."""

    NONE = 0
    SOUND = 1
    BITMAP_RLE = 2
    FONT = 3
    BITMAP_PLAYER = 4
    PALETTE = 5
    UNSET = 6
    BITMAP_SHADOW = 7
    BOB = 8
    MAP = 9
    TEXT = 10
    RAW = 11
    MAP_HEADER = 12
    INI = 13
    BITMAP = 14
    PALETTE_ANIM = 15


class ArchiveItem:
    """Base class of everything that can be stored in an archive."""

    def __init__(self, bob_type: BobType = BobType.NONE, name: str = "untitled") -> None:
        self.bob_type = BobType(bob_type)
        self.name = name

    def clone(self) -> "ArchiveItem":
        """Return an independent deep copy of this item."""
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bob_type={self.bob_type.name}, name={self.name!r})"


def _clone_or_none(item: Optional[ArchiveItem]) -> Optional[ArchiveItem]:
    return None if item is None else item.clone()


class Archive:
    """An ordered sequence of slots, each holding an item or None."""

    def __init__(self, items: Iterable[Optional[ArchiveItem]] = ()) -> None:
        self._items: list[Optional[ArchiveItem]] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Optional[ArchiveItem]]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Optional[ArchiveItem]:
        return self.get(index)

    def get(self, index: int) -> Optional[ArchiveItem]:
        """Return the item at ``index``, or None if the slot is empty or out of range."""
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def alloc(self, count: int) -> None:
        """Drop all items and create ``count`` empty slots."""
        self._items = [None] * count

    def alloc_inc(self, increment: int) -> None:
        """Append ``increment`` empty slots."""
        self._items.extend([None] * increment)

    def clear(self) -> None:
        self._items = []

    def set(self, index: int, item: Optional[ArchiveItem]) -> None:
        """Store ``item`` (taking it as is) in an existing slot."""
        if not 0 <= index < len(self._items):
            raise IndexError("Index out of range")
        self._items[index] = item

    def set_copy(self, index: int, item: Optional[ArchiveItem]) -> None:
        """Store a copy of ``item`` in an existing slot."""
        self.set(index, _clone_or_none(item))

    def push(self, item: Optional[ArchiveItem]) -> None:
        self._items.append(item)

    def push_copy(self, item: Optional[ArchiveItem]) -> None:
        self._items.append(_clone_or_none(item))

    def find(self, name: str) -> Optional[ArchiveItem]:
        """Return the first item with the given name, or None."""
        return next((it for it in self._items if it is not None and it.name == name), None)

    def release(self, index: int) -> Optional[ArchiveItem]:
        """Take the item out of its slot, leaving the slot empty."""
        if not 0 <= index < len(self._items):
            return None
        item = self._items[index]
        self._items[index] = None
        return item

    def copy(self) -> "Archive":
        """Return a copy of this archive holding copies of all items."""
        duplicate = copy.copy(self)
        duplicate._items = [_clone_or_none(it) for it in self._items]
        return duplicate