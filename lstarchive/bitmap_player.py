"""Bitmaps with a separate layer of player colors."""

from __future__ import annotations

import struct
from typing import BinaryIO, Optional

from lstarchive.archive import BobType
from lstarchive.bitmap import Bitmap, BitmapError, ColorBGRA, Palette, TextureFormat

# nx, ny, unknown (0), width, height, unknown (1), data length
_HEADER = struct.Struct("<hhIHHHI")

PLAYER_TRANSPARENT_INDEX = 0xFF
"""Value of the player layer where a pixel carries no player color."""

NUM_PLAYER_COLORS = 4
"""Number of consecutive palette shades that make up one player color."""

DEFAULT_PLAYER_START = 128
"""Palette index of the brightest shade of the first player color."""

_MAX_RUN = 63
_TRANSPARENT_LIMIT = 0x40
_COLORED = 0x40
_PLAYER = 0x80
_COMPRESSED = 0xC0


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise BitmapError("Unexpected end of file")
    return data


def _bpp(fmt: TextureFormat) -> int:
    return 1 if fmt is TextureFormat.PALETTED else 4


def _clip(x: int, y: int, w: int, h: int, max_w: int, max_h: int) -> tuple[int, int, int, int]:
    x = min(x, max_w)
    y = min(y, max_h)
    return x, y, min(w, max_w - x), min(h, max_h - y)


class BitmapPlayer(Bitmap):
    """Bitmap whose player-colored pixels are kept in an extra layer.

    The layer stores, per pixel, the shade (0..3) of the player color or
    PLAYER_TRANSPARENT_INDEX where the pixel has no player color.
    """

    def __init__(self) -> None:
        self._player = bytearray()
        super().__init__(BobType.BITMAP_PLAYER)

    # -- memory -----------------------------------------------------------

    def init(self, width: int, height: int, fmt: TextureFormat,
             palette: Optional[Palette] = None) -> None:
        """Allocate a transparent image and an empty player layer."""
        super().init(width, height, fmt, palette)
        self._player = bytearray([PLAYER_TRANSPARENT_INDEX]) * (self.width * self.height)

    def clear(self) -> None:
        """Release the pixel memory and the player layer."""
        super().clear()
        self._player = bytearray()

    def _player_offset(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside of {self.width}x{self.height} image")
        return y * self.width + x

    def is_player_color(self, x: int, y: int) -> bool:
        return self._player[self._player_offset(x, y)] != PLAYER_TRANSPARENT_INDEX

    def get_player_color_index(self, x: int, y: int) -> int:
        """Return the player shade of a pixel, or PLAYER_TRANSPARENT_INDEX."""
        return self._player[self._player_offset(x, y)]

    def _set_player(self, x: int, y: int, value: int) -> None:
        self._player[self._player_offset(x, y)] = value

    # -- reading ----------------------------------------------------------

    def load(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Read the bitmap from ``stream``."""
        if palette is None:
            raise BitmapError("Palette is missing")
        self.clear()
        nx, ny, unknown1, width, height, unknown2, length = _HEADER.unpack(
            _read_exact(stream, _HEADER.size))
        self.nx, self.ny = nx, ny
        if unknown1 != 0 or unknown2 != 1:
            raise BitmapError("Wrong header")
        if length < height * 2:
            raise BitmapError("Wrong format: data shorter than row table")
        starts = list(struct.unpack(f"<{height}H", _read_exact(stream, height * 2)))
        data = _read_exact(stream, length - height * 2)

        self.load_rows(width, data, starts, False, palette)
        if self.texture_format is TextureFormat.BGRA:
            self.remove_palette()

    def load_rows(self, width: int, image: bytes, starts: list[int], absolute_starts: bool,
                  palette: Optional[Palette]) -> None:
        """Decode compressed rows; ``starts`` point into ``image`` (or past the row table)."""
        if palette is None:
            raise BitmapError("Palette is missing")
        height = len(starts)
        self.init(width, height, self.wanted_format(TextureFormat.PALETTED), palette)
        if not image:
            return
        try:
            for y, start in enumerate(starts):
                position = start if absolute_starts else start - height * 2
                if not 0 <= position <= len(image):
                    raise BitmapError("Unexpected end of file")
                position = self._decode_row(image, position, y, width)
        except IndexError:
            raise BitmapError("Wrong format: corrupt player bitmap data") from None

    def _decode_row(self, image: bytes, position: int, y: int, width: int) -> int:
        x = 0
        while x < width:
            shift = image[position]
            position += 1
            if shift < _TRANSPARENT_LIMIT:
                x += shift
            elif shift < _PLAYER:
                for color in image[position:position + shift - _COLORED]:
                    self.set_pixel(x, y, color)
                    x += 1
                position += shift - _COLORED
            elif shift < _COMPRESSED:
                shade = image[position]
                for _ in range(shift - _PLAYER):
                    self._set_player(x, y, shade)
                    self.set_pixel(x, y, (shade + DEFAULT_PLAYER_START) & 0xFF)
                    x += 1
                position += 1
            else:
                color = image[position]
                for _ in range(shift - _COMPRESSED):
                    self.set_pixel(x, y, color)
                    x += 1
                position += 1
        return position

    # -- writing ----------------------------------------------------------

    def _index_at(self, x: int, y: int, palette: Palette) -> int:
        try:
            return self.get_pixel_index(x, y, palette)
        except KeyError:
            raise BitmapError(f"Color of pixel ({x}, {y}) is not in the palette") from None

    def write(self, stream: BinaryIO, palette: Optional[Palette]) -> None:
        """Write the bitmap to ``stream``."""
        if palette is None:
            palette = self.palette
        if palette is None:
            raise BitmapError("Palette is missing")
        width, height = self.width, self.height
        stream.write(struct.pack("<hhIHHH", self.nx, self.ny, 0, width, height, 1))

        image = bytearray()
        starts: list[int] = []
        for y in range(height):
            starts.append((len(image) + height * 2) & 0xFFFF)
            x = 0
            while x < width:
                target = len(image)
                image.append(0)
                if self.is_player_color(x, y):
                    shade = self.get_player_color_index(x, y)
                    image.append(shade)
                    count = 1
                    x += 1
                    while x < width and count < _MAX_RUN and self.get_player_color_index(x, y) == shade:
                        x += 1
                        count += 1
                    image[target] = count + _PLAYER
                    continue
                color = self._index_at(x, y, palette)
                count = 1
                x += 1
                if palette.is_transparent(color):
                    while (x < width and count < _MAX_RUN and not self.is_player_color(x, y)
                           and palette.is_transparent(self._index_at(x, y, palette))):
                        x += 1
                        count += 1
                    image[target] = count
                else:
                    image.append(color)
                    while (x < width and count < _MAX_RUN and not self.is_player_color(x, y)
                           and self._index_at(x, y, palette) == color):
                        x += 1
                        count += 1
                    image[target] = count + _COMPRESSED

        stream.write(struct.pack("<I", len(image) + height * 2))
        stream.write(struct.pack(f"<{height}H", *starts))
        stream.write(bytes(image))

    # -- buffers ----------------------------------------------------------

    def create(self, width: int, height: int, buffer: Optional[bytes], buffer_width: int,
               buffer_height: int, fmt: TextureFormat, palette: Optional[Palette] = None,
               player_start: int = DEFAULT_PLAYER_START) -> None:
        """Create the bitmap from a buffer, moving player-colored pixels to the player layer.

        Palette indices ``player_start`` .. ``player_start + 3`` count as player colors.
        """
        if buffer_width > 0 and buffer_height > 0 and buffer is None:
            raise BitmapError("Invalid buffer")
        if palette is None:
            palette = self.palette
        if palette is None:
            raise BitmapError("Palette is missing")
        fmt = TextureFormat(fmt)
        self.init(width, height, fmt, None if fmt is TextureFormat.BGRA else palette)

        bpp = _bpp(fmt)
        copy_w = min(buffer_width, self.width)
        copy_h = min(buffer_height, self.height)
        if copy_w > 0 and copy_h > 0 and len(buffer) < ((copy_h - 1) * buffer_width + copy_w) * bpp:
            raise BitmapError("Buffer is too small")
        last_player = player_start + NUM_PLAYER_COLORS - 1
        for y in range(copy_h):
            for x in range(copy_w):
                pos = (y * buffer_width + x) * bpp
                dst = (y * self.width + x) * bpp
                if fmt is TextureFormat.BGRA:
                    color = ColorBGRA.from_bytes(buffer, pos)
                    if color.alpha != 0:
                        index = palette.lookup(color)
                        if player_start <= index <= last_player:
                            self._set_player(x, y, index - player_start)
                    self.pixel_data[dst:dst + 4] = color.to_bytes()
                else:
                    index = buffer[pos]
                    if player_start <= index <= last_player:
                        self._set_player(x, y, index - player_start)
                        index = palette._required_transparent_index()
                    self.pixel_data[dst] = index

    def print(self, buffer: bytearray, width: int, height: int, fmt: TextureFormat,
              palette: Optional[Palette] = None, player_start: int = DEFAULT_PLAYER_START,
              to_x: int = 0, to_y: int = 0, from_x: int = 0, from_y: int = 0,
              from_w: int = 0, from_h: int = 0, only_player: bool = False) -> None:
        """Draw the bitmap into ``buffer`` with player shades mapped from ``player_start``."""
        if width == 0 or height == 0:
            return
        if buffer is None:
            raise BitmapError("Invalid buffer")
        if palette is None:
            palette = self.palette
        if palette is None:
            raise BitmapError("Palette is missing")
        fmt = TextureFormat(fmt)
        if fmt is TextureFormat.ORIGINAL:
            raise ValueError("Buffer format must be PALETTED or BGRA")
        dst_bpp = _bpp(fmt)
        if len(buffer) < width * height * dst_bpp:
            raise BitmapError("Buffer is too small")

        if from_w == 0 and from_x < self.width:
            from_w = self.width - from_x
        if from_h == 0 and from_y < self.height:
            from_h = self.height - from_y
        fx, fy, fw, fh = _clip(from_x, from_y, from_w, from_h, self.width, self.height)
        tx, ty, tw, th = _clip(to_x, to_y, width, height, width, height)

        if not only_player:
            self._blit(buffer, width, height, fmt, palette, fx, fy, fw, fh, tx, ty)

        paletted_src = self.texture_format is TextureFormat.PALETTED
        for y in range(max(0, min(fh, th))):
            for x in range(max(0, min(fw, tw))):
                shade = self.get_player_color_index(x + fx, y + fy)
                if shade == PLAYER_TRANSPARENT_INDEX:
                    continue
                pos = ((y + ty) * width + tx + x) * dst_bpp
                if fmt is TextureFormat.PALETTED:
                    buffer[pos] = (shade + player_start) & 0xFF
                else:
                    if paletted_src:
                        alpha = 0xFF
                    else:
                        alpha = self.pixel_data[((y + fy) * self.width + x + fx) * 4 + 3]
                    base = palette.get(shade + player_start)
                    buffer[pos:pos + 4] = ColorBGRA(base.blue, base.green, base.red, alpha).to_bytes()

    # -- geometry ---------------------------------------------------------

    def _is_pixel_transparent(self, x: int, y: int) -> bool:
        return not self.is_player_color(x, y) and super()._is_pixel_transparent(x, y)

    def visible_area(self) -> tuple[int, int, int, int]:
        """Return (x, y, width, height) of the box holding all visible and player pixels."""
        return super().visible_area()