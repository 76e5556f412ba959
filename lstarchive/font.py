"""Fonts: archives of glyph bitmaps with letter spacing."""

from __future__ import annotations

import struct
from typing import BinaryIO, Optional

from lstarchive.archive import Archive, ArchiveItem, BobType
from lstarchive.bitmap import BitmapError, Palette
from lstarchive.bitmap_formats import BitmapRaw, BitmapRLE, BitmapShadow
from lstarchive.bitmap_player import BitmapPlayer

_FIRST_GLYPH = 32
_NUM_PLAIN_GLYPHS = 256
_UNICODE_MARKER = 0xFF


def _read(stream: BinaryIO, fmt: str) -> tuple:
    size = struct.calcsize(fmt)
    data = stream.read(size)
    if len(data) != size:
        raise BitmapError("Unexpected end of file")
    return struct.unpack(fmt, data)


def _new_item(bob_type: BobType) -> ArchiveItem:
    factories = {
        BobType.BITMAP_RLE: BitmapRLE,
        BobType.BITMAP_PLAYER: BitmapPlayer,
        BobType.BITMAP_SHADOW: BitmapShadow,
        BobType.BITMAP: BitmapRaw,
        BobType.FONT: Font,
    }
    factory = factories.get(bob_type)
    if factory is None:
        raise BitmapError(f"Unsupported item type in font: {bob_type.name}")
    return factory()


def _load_item(raw_type: int, stream: BinaryIO, palette: Palette) -> ArchiveItem:
    try:
        bob_type = BobType(raw_type)
    except ValueError:
        raise BitmapError(f"Unknown item type in font: {raw_type}") from None
    item = _new_item(bob_type)
    item.load(stream, palette)  # type: ignore[attr-defined]
    return item


class Font(ArchiveItem, Archive):
    """A font: glyph items indexed by character code, plus letter spacing."""

    def __init__(self) -> None:
        ArchiveItem.__init__(self, BobType.FONT)
        Archive.__init__(self)
        self.is_unicode = False
        self.dx = 0
        self.dy = 0

    def load(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Read the font from ``stream``."""
        if palette is None:
            raise BitmapError("Palette is missing")
        self.dx, self.dy = _read(stream, "<BB")
        self.is_unicode = self.dx == _UNICODE_MARKER and self.dy == _UNICODE_MARKER
        if self.is_unicode:
            num_chars, self.dx, self.dy = _read(stream, "<IBB")
        else:
            num_chars = _NUM_PLAIN_GLYPHS

        self.alloc(num_chars)
        for code in range(_FIRST_GLYPH, num_chars):
            (raw_type,) = _read(stream, "<h")
            if raw_type == BobType.NONE:
                continue
            item = _load_item(raw_type, stream, palette)
            item.name = f"U+{code:x}"
            self.set(code, item)

    def write(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Write the font to ``stream``."""
        if palette is None:
            raise BitmapError("Palette is missing")
        num_chars = len(self)
        if num_chars > _NUM_PLAIN_GLYPHS and not self.is_unicode:
            raise BitmapError("Trying to save a non-unicode font with more than 256 glyphs")

        if self.is_unicode:
            stream.write(struct.pack("<HI", 0xFFFF, num_chars))
        else:
            num_chars = _NUM_PLAIN_GLYPHS
        stream.write(struct.pack("<BB", self.dx, self.dy))

        for code in range(_FIRST_GLYPH, num_chars):
            item = self.get(code)
            bob_type = item.bob_type if item is not None else BobType.NONE
            stream.write(struct.pack("<h", int(bob_type)))
            if item is None:
                continue
            writer = getattr(item, "write", None)
            if writer is None:
                raise BitmapError(f"Unsupported item type in font: {bob_type.name}")
            writer(stream, palette)