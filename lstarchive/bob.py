"""Bob files: animated figures made of body images, overlays and links between them."""

from __future__ import annotations

import re
import struct
from enum import IntEnum
from typing import BinaryIO, Iterator, Optional, TextIO

from lstarchive.archive import Archive, ArchiveItem, BobType
from lstarchive.bitmap import BitmapError, Palette
from lstarchive.bitmap_player import BitmapPlayer

_COLOR_BLOCK_HEADER = 0x01F5
_IMAGE_DATA_HEADER = 0x01F4

NUM_BODY_IMAGES = 2 * 6 * 8
"""Body images: 2 types (fat, non-fat), 6 directions, 8 animation steps."""

NUM_LINKS_PER_OVERLAY = 8 * 2 * 6
"""Links of one overlay: 8 animation steps, 2 types, 6 directions."""

SPRITE_WIDTH = 32
X_OFFSET = 16

_INDEX_PATTERN = re.compile(r"[0-9]+")
_MAX_UINT16 = 0xFFFF


class ImgDir(IntEnum):
    """Directions a figure can face."""

    E = 0
    SE = 1
    SW = 2
    W = 3
    NW = 4
    NE = 5


def _read_bytes(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise BitmapError("Unexpected end of file")
    return data


def _read(stream: BinaryIO, fmt: str) -> tuple:
    return struct.unpack(fmt, _read_bytes(stream, struct.calcsize(fmt)))


def _read_color_block(stream: BinaryIO) -> bytes:
    ident, size = _read(stream, "<HH")
    if ident != _COLOR_BLOCK_HEADER:
        raise BitmapError("Wrong format: expected a color block")
    return _read_bytes(stream, size)


def _read_image_data(stream: BinaryIO) -> tuple[list[int], int]:
    ident, height = _read(stream, "<HB")
    if ident != _IMAGE_DATA_HEADER:
        raise BitmapError("Wrong format: expected image data")
    starts = list(_read(stream, f"<{height}H"))
    (ny,) = _read(stream, "<B")
    return starts, ny


def load_mapping(stream: TextIO) -> Iterator[tuple[int, str]]:
    """Yield (index, value) pairs from lines of the form ``<index> <value>``.

    Empty lines and lines starting with ``#`` are skipped. Malformed lines
    raise ValueError naming the line number.
    """
    for line_number, raw in enumerate(stream, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip() or line.startswith("#"):
            continue
        parts = line.split(None, 1)
        if len(parts) != 2:
            raise ValueError(f"Error at line {line_number}: No index or value found")
        index, value = parts
        if not _INDEX_PATTERN.fullmatch(index):
            raise ValueError(f"Error at line {line_number}: Invalid index: {index}")
        yield int(index), value


class Bob(ArchiveItem, Archive):
    """A figure: 96 body images followed by overlay images, combined through links."""

    def __init__(self) -> None:
        ArchiveItem.__init__(self, BobType.BOB)
        Archive.__init__(self)
        self.num_overlay_images = 0
        self.links: list[int] = []

    @property
    def num_links(self) -> int:
        return len(self.links)

    def _new_image(self, ny: int, width_data: bytes, starts: list[int],
                   palette: Palette) -> BitmapPlayer:
        image = BitmapPlayer()
        image.nx = X_OFFSET
        image.ny = ny
        image.load_rows(SPRITE_WIDTH, width_data, starts, True, palette)
        return image

    def load(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Read the figure from ``stream``."""
        if palette is None:
            raise BitmapError("Palette is missing")
        self.num_overlay_images = 0
        self.links = []

        body_colors = _read_color_block(stream)
        self.alloc(NUM_BODY_IMAGES)
        for index in range(NUM_BODY_IMAGES):
            starts, ny = _read_image_data(stream)
            self.set(index, self._new_image(ny, body_colors, starts, palette))

        direction_colors = [_read_color_block(stream) for _ in range(6)]

        (self.num_overlay_images,) = _read(stream, "<H")
        self.alloc_inc(self.num_overlay_images)
        overlays = [_read_image_data(stream) for _ in range(self.num_overlay_images)]

        (num_links,) = _read(stream, "<H")
        links: list[int] = []
        loaded = [False] * self.num_overlay_images
        for index in range(num_links):
            link, _unknown = _read(stream, "<HH")
            if link >= self.num_overlay_images:
                raise BitmapError("Wrong format: link points to a missing overlay")
            links.append(link)
            if loaded[link]:
                continue
            starts, ny = overlays[link]
            image = self._new_image(ny, direction_colors[index % 6], starts, palette)
            self.set(NUM_BODY_IMAGES + link, image)
            loaded[link] = True
        self.links = [link + NUM_BODY_IMAGES for link in links]

    def write(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Bob files cannot be written; always raises BitmapError."""
        raise BitmapError("Unsupported format: bob files cannot be written")

    @staticmethod
    def _as_player(item: Optional[ArchiveItem]) -> Optional[BitmapPlayer]:
        return item if isinstance(item, BitmapPlayer) else None

    def get_body(self, fat: bool, direction: ImgDir, step: int) -> Optional[BitmapPlayer]:
        """Return the body image for [fat][direction][step]."""
        index = (int(bool(fat)) * 6 + int(direction)) * 8 + step
        return self._as_player(self.get(index))

    def get_overlay_index(self, link_index: int) -> int:
        """Return the archive index an overlay link points to."""
        return self.links[link_index]

    def get_overlay(self, overlay: int, fat: bool, direction: ImgDir,
                    step: int) -> Optional[BitmapPlayer]:
        """Return the overlay image for [overlay][step][fat][direction]."""
        link = (overlay * NUM_LINKS_PER_OVERLAY + step * 12
                + int(bool(fat)) * 6 + int(direction))
        return self._as_player(self.get(self.get_overlay_index(link)))

    def write_links(self, stream: TextIO) -> None:
        """Write the links as a text mapping, one ``index<TAB>target`` per line."""
        for index, value in enumerate(self.links):
            if index % NUM_LINKS_PER_OVERLAY == 0:
                stream.write(f"# Job ID {index // NUM_LINKS_PER_OVERLAY}\n")
            stream.write(f"{index}\t{value}\n")

    @staticmethod
    def read_links(stream: TextIO) -> dict[int, int]:
        """Read links written by :meth:`write_links`."""
        result: dict[int, int] = {}
        for index, value in load_mapping(stream):
            if index > _MAX_UINT16:
                raise ValueError(f"Index {index} is too large")
            text = value.strip()
            if not _INDEX_PATTERN.fullmatch(text) or int(text) > _MAX_UINT16:
                raise ValueError(f"Invalid link value: {value}")
            result[index] = int(text)
        return result