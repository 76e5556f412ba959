"""Bitmap items stored run-length encoded, uncompressed, or as shadows."""

from __future__ import annotations

import struct
from typing import BinaryIO, Optional

from lstarchive.archive import BobType
from lstarchive.bitmap import Bitmap, BitmapError, Palette, TextureFormat

# nx, ny, unknown (0), width, height, unknown (1), data length
_HEADER = struct.Struct("<hhIHHHI")
_RAW_PREFIX = struct.Struct("<HI")
_RAW_SUFFIX = struct.Struct("<hhHH")
_RAW_TRAILER = bytes((0x00, 0x00, 0x02, 0x01, 0xF4, 0x06, 0x70, 0x00))
_ROW_END = 0xFF
_MAX_RLE_COLORED = 0x7F
_MAX_RUN = 0xFF
_WHITE = (255, 255, 255)


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise BitmapError("Unexpected end of file")
    return data


def _require_palette(palette: Optional[Palette]) -> Palette:
    if palette is None:
        raise BitmapError("Palette is missing")
    return palette


def _transparent_fill(palette: Palette) -> int:
    return palette.transparent_index if palette.transparent_index is not None else 0


def _pack_starts(starts: list[int]) -> bytes:
    return struct.pack(f"<{len(starts)}H", *starts)


def _write_header(stream: BinaryIO, bitmap: Bitmap) -> None:
    stream.write(struct.pack("<hhIHHH", bitmap.nx, bitmap.ny, 0, bitmap.width, bitmap.height, 1))


def _write_body(stream: BinaryIO, starts: list[int], image: bytes) -> None:
    stream.write(struct.pack("<I", len(image) + len(starts) * 2))
    stream.write(_pack_starts(starts))
    stream.write(image)


def _skip_row_end(data: bytes, position: int) -> int:
    if position >= len(data):
        raise BitmapError("Wrong format: missing row end marker")
    return position + 1


class BitmapRLE(Bitmap):
    """Bitmap whose rows alternate runs of colored and transparent pixels."""

    def __init__(self) -> None:
        super().__init__(BobType.BITMAP_RLE)

    def load(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Read the bitmap from ``stream``."""
        palette = _require_palette(palette)
        self.clear()
        nx, ny, unknown1, width, height, unknown2, length = _HEADER.unpack(
            _read_exact(stream, _HEADER.size))
        self.nx, self.ny = nx, ny
        if unknown1 != 0 or unknown2 != 1:
            raise BitmapError("Wrong header")
        data = _read_exact(stream, length)

        self.init(width, height, self.wanted_format(TextureFormat.PALETTED), palette)
        if length:
            try:
                self._decode(data, width, height)
            except IndexError:
                raise BitmapError("Wrong format: corrupt RLE data") from None
        if self.texture_format is TextureFormat.BGRA:
            self.remove_palette()

    def _decode(self, data: bytes, width: int, height: int) -> None:
        position = height * 2
        for y in range(height):
            x = 0
            while x < width:
                count = data[position]
                position += 1
                if position + count + 1 >= len(data):
                    raise BitmapError("Wrong format: run exceeds data")
                for color in data[position:position + count]:
                    self.set_pixel(x, y, color)
                    x += 1
                position += count
                x += data[position]
                position += 1
            position = _skip_row_end(data, position)
        position = _skip_row_end(data, position)
        if position != len(data):
            raise BitmapError("Wrong format: data length mismatch")

    def write(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Write the bitmap to ``stream``."""
        palette = _require_palette(palette if palette is not None else self.palette)
        width, height = self.width, self.height
        stream.write(struct.pack("<hh", self.nx, self.ny))
        stream.write(bytes(4))
        stream.write(struct.pack("<HH", width, height))
        stream.write(bytes((0x01, 0x00)))

        buffer = bytearray([_transparent_fill(palette)]) * (width * height)
        self.print(buffer, width, height, TextureFormat.PALETTED, palette)

        image = bytearray()
        starts: list[int] = []
        for y in range(height):
            start = len(image) + height * 2
            starts.append(min(start, 0xFFFF))
            row = buffer[y * width:(y + 1) * width]
            x = 0
            while x < width:
                count = 0
                while (x + count < width and count < _MAX_RLE_COLORED
                       and not palette.is_transparent(row[x + count])):
                    count += 1
                image.append(count)
                image += row[x:x + count]
                x += count

                count = 0
                while (x + count < width and count < _MAX_RUN
                       and palette.is_transparent(row[x + count])):
                    count += 1
                image.append(count)
                x += count
            image.append(_ROW_END)
        image.append(_ROW_END)
        _write_body(stream, starts, bytes(image))


class BitmapRaw(Bitmap):
    """Uncompressed paletted bitmap."""

    def __init__(self) -> None:
        super().__init__(BobType.BITMAP)

    def load(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Read the bitmap from ``stream``."""
        palette = _require_palette(palette)
        unknown1, length = _RAW_PREFIX.unpack(_read_exact(stream, _RAW_PREFIX.size))
        if unknown1 != 1:
            raise BitmapError("Wrong header")
        data = _read_exact(stream, length)
        nx, ny, width, height = _RAW_SUFFIX.unpack(_read_exact(stream, _RAW_SUFFIX.size))
        self.nx, self.ny = nx, ny
        if length != width * height:
            raise BitmapError("Wrong format: data length does not match size")

        out_format = self.wanted_format(TextureFormat.PALETTED)
        if length > 0:
            self.create(width, height, data, width, height, TextureFormat.PALETTED, palette)
            self.convert_format(out_format)
            if self.texture_format is TextureFormat.BGRA:
                self.remove_palette()
        else:
            self.init(0, 0, out_format,
                      palette if out_format is TextureFormat.PALETTED else None)
        # trailing unknown data, possibly cut short
        stream.read(len(_RAW_TRAILER))

    def write(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Write the bitmap to ``stream``."""
        if palette is None:
            palette = self.palette
        width, height = self.width, self.height
        buffer = bytearray(width * height)
        self.print(buffer, width, height, TextureFormat.PALETTED, palette)
        stream.write(_RAW_PREFIX.pack(1, len(buffer)))
        stream.write(bytes(buffer))
        stream.write(_RAW_SUFFIX.pack(self.nx, self.ny, width, height))
        stream.write(_RAW_TRAILER)


class BitmapShadow(Bitmap):
    """Bitmap holding only the shape of a shadow: gray where not transparent."""

    def __init__(self) -> None:
        super().__init__(BobType.BITMAP_SHADOW)

    def load(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Read the shadow from ``stream``."""
        palette = _require_palette(palette)
        self.clear()
        raw = stream.read(_HEADER.size)
        if len(raw) != _HEADER.size:
            raise BitmapError("Wrong header")
        nx, ny, unknown1, width, height, unknown2, length = _HEADER.unpack(raw)
        self.nx, self.ny = nx, ny
        if unknown1 != 0 or unknown2 != 1:
            raise BitmapError("Wrong header")
        data = _read_exact(stream, length)

        try:
            gray = palette.lookup(_WHITE)
        except KeyError:
            raise BitmapError("Palette has no white color for shadows") from None

        if length == 0:
            self.init(width, height, TextureFormat.PALETTED, palette)
            return

        buffer = bytearray([_transparent_fill(palette)]) * (width * height)
        position = height * 2
        for y in range(height):
            x = 0
            while x < width and position + 2 < len(data):
                count = data[position]
                position += 1
                if x + count > width:
                    raise BitmapError("Wrong format: shadow run exceeds row")
                row_start = y * width + x
                buffer[row_start:row_start + count] = bytes([gray]) * count
                x += count
                x += data[position]
                position += 1
            position = _skip_row_end(data, position)
        position = _skip_row_end(data, position)
        if position != length:
            raise BitmapError("Wrong format: data length mismatch")

        self.create(width, height, bytes(buffer), width, height, TextureFormat.PALETTED, palette)
        self.convert_format(self.wanted_format(TextureFormat.PALETTED))
        if self.texture_format is TextureFormat.BGRA:
            self.remove_palette()

    def _is_transparent(self, x: int, y: int, palette: Palette) -> bool:
        try:
            return palette.is_transparent(self.get_pixel_index(x, y, palette))
        except KeyError:
            raise BitmapError(f"Color of pixel ({x}, {y}) is not in the palette") from None

    def write(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Write the shadow to ``stream``."""
        palette = _require_palette(palette if palette is not None else self.palette)
        width, height = self.width, self.height
        _write_header(stream, self)

        image = bytearray()
        starts: list[int] = []
        for y in range(height):
            starts.append((len(image) + height * 2) & 0xFFFF)
            x = 0
            while x < width:
                count = 0
                while x < width and count < _MAX_RUN and not self._is_transparent(x, y, palette):
                    count += 1
                    x += 1
                image.append(count)
                count = 0
                while x < width and count < _MAX_RUN and self._is_transparent(x, y, palette):
                    count += 1
                    x += 1
                image.append(count)
            image.append(_ROW_END)
        image.append(_ROW_END)
        _write_body(stream, starts, bytes(image))