"""Colors, palettes and the bitmap base classes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Union

from lstarchive.archive import ArchiveItem, BobType


class TextureFormat(Enum):
    """Pixel storage formats."""

    ORIGINAL = "original"
    PALETTED = "paletted"
    BGRA = "bgra"


class BitmapError(Exception):
    """Raised when bitmap data cannot be created, converted, read or written."""


_global_texture_format = TextureFormat.ORIGINAL


def get_global_texture_format() -> TextureFormat:
    """Return the format loaded bitmaps are converted to (ORIGINAL keeps theirs)."""
    return _global_texture_format


def set_global_texture_format(fmt: TextureFormat) -> None:
    global _global_texture_format
    _global_texture_format = TextureFormat(fmt)


def _bpp(fmt: TextureFormat) -> int:
    return 1 if fmt is TextureFormat.PALETTED else 4


@dataclass(frozen=True)
class ColorBGRA:
    """An 8-bit-per-channel color, stored in memory as B, G, R, A."""

    blue: int = 0
    green: int = 0
    red: int = 0
    alpha: int = 0

    def __post_init__(self) -> None:
        for component in (self.blue, self.green, self.red, self.alpha):
            if not 0 <= component <= 0xFF:
                raise ValueError(f"Color component out of range: {component}")

    @classmethod
    def from_value(cls, value: int) -> "ColorBGRA":
        """Build from a 0xAARRGGBB value."""
        return cls(value & 0xFF, (value >> 8) & 0xFF, (value >> 16) & 0xFF, (value >> 24) & 0xFF)

    @classmethod
    def from_rgb(cls, red: int, green: int, blue: int, alpha: int = 0xFF) -> "ColorBGRA":
        return cls(blue, green, red, alpha)

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> "ColorBGRA":
        """Read four bytes in B, G, R, A order."""
        blue, green, red, alpha = data[offset:offset + 4]
        return cls(blue, green, red, alpha)

    @property
    def value(self) -> int:
        return (self.alpha << 24) | (self.red << 16) | (self.green << 8) | self.blue

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.red, self.green, self.blue)

    def to_bytes(self) -> bytes:
        return bytes((self.blue, self.green, self.red, self.alpha))


ColorLike = Union[ColorBGRA, tuple]


def _to_rgb(color: ColorLike) -> tuple[int, int, int]:
    if isinstance(color, ColorBGRA):
        return color.rgb
    red, green, blue = color
    for component in (red, green, blue):
        if not 0 <= component <= 0xFF:
            raise ValueError(f"Color component out of range: {component}")
    return (red, green, blue)


class Palette(ArchiveItem):
    """A table of 256 RGB colors, one of which may mark transparency."""

    SIZE = 256

    def __init__(self, colors: Optional[Iterable[ColorLike]] = None,
                 transparent_index: Optional[int] = 0) -> None:
        super().__init__(BobType.PALETTE)
        self._colors: list[tuple[int, int, int]] = [(0, 0, 0)] * self.SIZE
        if colors is not None:
            colors = list(colors)
            if len(colors) > self.SIZE:
                raise ValueError("A palette holds at most 256 colors")
            for index, color in enumerate(colors):
                self.set(index, color)
        self.transparent_index = transparent_index

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.SIZE:
            raise IndexError(f"Palette index out of range: {index}")

    def get(self, index: int) -> ColorBGRA:
        self._check_index(index)
        return ColorBGRA.from_rgb(*self._colors[index])

    def set(self, index: int, color: ColorLike) -> None:
        self._check_index(index)
        self._colors[index] = _to_rgb(color)

    def lookup(self, color: ColorLike) -> int:
        """Return the first index holding ``color``; KeyError if there is none."""
        try:
            return self._colors.index(_to_rgb(color))
        except ValueError:
            raise KeyError(f"Color {color} not in palette") from None

    def lookup_or_default(self, color: ColorLike, default: int = 0) -> int:
        try:
            return self.lookup(color)
        except KeyError:
            return default

    def is_transparent(self, index: int) -> bool:
        return self.transparent_index is not None and index == self.transparent_index

    def has_transparency(self) -> bool:
        return self.transparent_index is not None

    def _required_transparent_index(self) -> int:
        if self.transparent_index is None:
            raise BitmapError("Palette has no transparent color")
        return self.transparent_index

    def __getitem__(self, index: int) -> ColorBGRA:
        return self.get(index)

    def __iter__(self) -> Iterator[ColorBGRA]:
        return (ColorBGRA.from_rgb(*rgb) for rgb in self._colors)

    def __len__(self) -> int:
        return self.SIZE

    def __contains__(self, color: object) -> bool:
        try:
            return _to_rgb(color) in self._colors  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Palette):
            return NotImplemented
        return self._colors == other._colors and self.transparent_index == other.transparent_index

    __hash__ = None  # type: ignore[assignment]


class BitmapBase(ArchiveItem):
    """Pixel storage with an origin, a format and an optional palette."""

    def __init__(self, bob_type: BobType = BobType.BITMAP) -> None:
        super().__init__(bob_type)
        self.nx = 0
        self.ny = 0
        self._width = 0
        self._height = 0
        self._palette: Optional[Palette] = None
        self._format = TextureFormat.BGRA
        self.pixel_data = bytearray()

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def texture_format(self) -> TextureFormat:
        return self._format

    @property
    def palette(self) -> Optional[Palette]:
        return self._palette

    @property
    def bpp(self) -> int:
        """Bytes per pixel of the current format."""
        return _bpp(self._format)

    @staticmethod
    def wanted_format(original: TextureFormat) -> TextureFormat:
        """Resolve the global texture format against an item's original one."""
        glob = get_global_texture_format()
        return original if glob is TextureFormat.ORIGINAL else glob

    def _offset(self, x: int, y: int) -> int:
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise IndexError(f"Pixel ({x}, {y}) outside of {self._width}x{self._height} image")
        return (y * self._width + x) * self.bpp

    def init(self, width: int, height: int, fmt: TextureFormat,
             palette: Optional[Palette] = None) -> None:
        """Allocate a transparent image of the given size, format and palette."""
        fmt = TextureFormat(fmt)
        if fmt is TextureFormat.ORIGINAL:
            raise ValueError("Must set the actual texture format")
        if fmt is TextureFormat.PALETTED and palette is None:
            raise BitmapError("Palette is missing")
        if fmt is TextureFormat.BGRA:
            # allows dropping the palette of a formerly paletted image
            self._format = TextureFormat.BGRA
        if palette is not None:
            self.set_palette(palette)
        else:
            self.remove_palette()
        self._allocate(width, height, fmt)

    def _allocate(self, width: int, height: int, fmt: TextureFormat) -> None:
        if fmt is TextureFormat.ORIGINAL:
            raise ValueError("Must set the actual texture format")
        if width < 0 or height < 0:
            raise ValueError("Image size must not be negative")
        self.clear()
        if width == 0:
            height = 0
        elif height == 0:
            width = 0
        if fmt is TextureFormat.PALETTED and self._palette is None:
            raise BitmapError("Palette is missing")
        self._width = width
        self._height = height
        self._format = fmt
        fill = 0
        if fmt is TextureFormat.PALETTED and self._palette.transparent_index is not None:
            fill = self._palette.transparent_index
        self.pixel_data = bytearray([fill]) * (width * height * self.bpp)

    def clear(self) -> None:
        """Release the pixel memory."""
        self._width = 0
        self._height = 0
        self.pixel_data = bytearray()

    def set_pixel(self, x: int, y: int, color_idx: int) -> None:
        """Set a pixel to a palette index (translated through the palette for BGRA)."""
        offset = self._offset(x, y)
        if self._format is TextureFormat.PALETTED:
            self.pixel_data[offset] = color_idx
            return
        if self._palette is None:
            raise BitmapError("Palette is missing")
        if self._palette.is_transparent(color_idx):
            self.pixel_data[offset + 3] = 0
        else:
            self.pixel_data[offset:offset + 4] = self._palette.get(color_idx).to_bytes()

    def set_pixel_color(self, x: int, y: int, color: ColorBGRA) -> None:
        """Set a pixel to a color (looked up in the palette for paletted images)."""
        offset = self._offset(x, y)
        if self._format is TextureFormat.PALETTED:
            if color.alpha == 0:
                self.pixel_data[offset] = self._palette._required_transparent_index()
            else:
                self.pixel_data[offset] = self._palette.lookup(color)
        else:
            self.pixel_data[offset:offset + 4] = color.to_bytes()

    def get_pixel_index(self, x: int, y: int, palette: Optional[Palette] = None) -> int:
        """Return the palette index of a pixel."""
        offset = self._offset(x, y)
        if self._format is TextureFormat.PALETTED:
            return self.pixel_data[offset]
        palette = palette if palette is not None else self._palette
        if palette is None:
            raise BitmapError("Palette is missing")
        color = ColorBGRA.from_bytes(self.pixel_data, offset)
        if color.alpha == 0:
            return palette._required_transparent_index()
        return palette.lookup(color)

    def get_pixel(self, x: int, y: int) -> ColorBGRA:
        """Return the color of a pixel; transparent pixels are all zero."""
        offset = self._offset(x, y)
        if self._format is TextureFormat.PALETTED:
            index = self.pixel_data[offset]
            if self._palette.is_transparent(index):
                return ColorBGRA()
            return self._palette.get(index)
        return ColorBGRA.from_bytes(self.pixel_data, offset)

    def convert_format(self, new_format: TextureFormat) -> None:
        """Convert the pixel data between paletted and BGRA storage."""
        new_format = TextureFormat(new_format)
        if new_format is TextureFormat.ORIGINAL or new_format is self._format:
            return
        if self._palette is None:
            raise BitmapError("Palette is missing")
        converted = bytearray()
        if new_format is TextureFormat.BGRA:
            for y in range(self._height):
                for x in range(self._width):
                    converted += self.get_pixel(x, y).to_bytes()
        else:
            for y in range(self._height):
                for x in range(self._width):
                    color = self.get_pixel(x, y)
                    if color.alpha == 0:
                        converted.append(self._palette._required_transparent_index())
                    else:
                        converted.append(self._palette.lookup(color))
        self.pixel_data = converted
        self._format = new_format

    def _is_pixel_transparent(self, x: int, y: int) -> bool:
        if self._format is TextureFormat.PALETTED:
            return self._palette.is_transparent(self.pixel_data[y * self._width + x])
        return self.pixel_data[(y * self._width + x) * 4 + 3] == 0

    def visible_area(self) -> tuple[int, int, int, int]:
        """Return (x, y, width, height) of the smallest box holding all visible pixels."""
        if self._width == 0 or self._height == 0:
            return (0, 0, 0, 0)
        if self._format is TextureFormat.PALETTED and not self._palette.has_transparency():
            return (0, 0, self._width, self._height)
        visible = [
            (x, y)
            for y in range(self._height)
            for x in range(self._width)
            if not self._is_pixel_transparent(x, y)
        ]
        if not visible:
            return (0, 0, 0, 0)
        xs = [x for x, _ in visible]
        ys = [y for _, y in visible]
        return (min(xs), min(ys), max(xs) - min(xs) + 1, max(ys) - min(ys) + 1)

    def check_palette(self, palette: Palette) -> bool:
        """Tell whether every visible pixel has an exact color in ``palette``."""
        if self._format is TextureFormat.PALETTED:
            return True
        for y in range(self._height):
            for x in range(self._width):
                color = self.get_pixel(x, y)
                if color.alpha != 0 and color not in palette:
                    return False
        return True

    def set_palette(self, palette: Optional[Palette]) -> None:
        """Use a copy of ``palette`` from now on (None removes it)."""
        if palette is None and self._format is TextureFormat.PALETTED:
            raise BitmapError("Cannot remove palette from paletted image")
        if palette is self._palette:
            return
        self._palette = None if palette is None else palette.clone()

    def remove_palette(self) -> None:
        self.set_palette(None)


class Bitmap(BitmapBase):
    """A bitmap that can be drawn into and created from pixel buffers."""

    def __init__(self, bob_type: BobType = BobType.BITMAP) -> None:
        super().__init__(bob_type)

    def _blit(self, buffer: bytearray, buf_w: int, buf_h: int, fmt: TextureFormat,
              dst_palette: Optional[Palette], from_x: int, from_y: int, from_w: int,
              from_h: int, to_x: int, to_y: int) -> None:
        copy_w = min(from_w, self._width - from_x, buf_w - to_x)
        copy_h = min(from_h, self._height - from_y, buf_h - to_y)
        if copy_w <= 0 or copy_h <= 0:
            return
        dst_bpp = _bpp(fmt)
        paletted_src = self._format is TextureFormat.PALETTED
        for dy in range(copy_h):
            for dx in range(copy_w):
                sx, sy = from_x + dx, from_y + dy
                pos = ((to_y + dy) * buf_w + to_x + dx) * dst_bpp
                if paletted_src:
                    index = self.pixel_data[sy * self._width + sx]
                    if self._palette.is_transparent(index):
                        continue
                    if fmt is TextureFormat.PALETTED:
                        buffer[pos] = index
                    else:
                        buffer[pos:pos + 4] = self._palette.get(index).to_bytes()
                else:
                    offset = (sy * self._width + sx) * 4
                    pixel = bytes(self.pixel_data[offset:offset + 4])
                    if pixel[3] == 0:
                        continue
                    if fmt is TextureFormat.PALETTED:
                        buffer[pos] = dst_palette.lookup(ColorBGRA.from_bytes(pixel))
                    else:
                        buffer[pos:pos + 4] = pixel

    def print(self, buffer: bytearray, width: int, height: int, fmt: TextureFormat,
              palette: Optional[Palette] = None, to_x: int = 0, to_y: int = 0,
              from_x: int = 0, from_y: int = 0, from_w: int = 0, from_h: int = 0) -> None:
        """Draw (part of) the bitmap into ``buffer``, skipping transparent pixels."""
        if width == 0 or height == 0:
            return
        if buffer is None:
            raise BitmapError("Invalid buffer")
        fmt = TextureFormat(fmt)
        if fmt is TextureFormat.ORIGINAL:
            raise ValueError("Buffer format must be PALETTED or BGRA")
        if len(buffer) < width * height * _bpp(fmt):
            raise BitmapError("Buffer is too small")
        dst_palette = None
        if fmt is TextureFormat.PALETTED:
            dst_palette = palette if palette is not None else self._palette
            if dst_palette is None:
                raise BitmapError("Palette is missing")
        if from_w == 0 and from_x < self._width:
            from_w = self._width - from_x
        if from_h == 0 and from_y < self._height:
            from_h = self._height - from_y
        self._blit(buffer, width, height, fmt, dst_palette, from_x, from_y, from_w, from_h,
                   to_x, to_y)

    def create(self, width: int, height: int, buffer: Optional[bytes], buffer_width: int,
               buffer_height: int, fmt: TextureFormat, palette: Optional[Palette] = None) -> None:
        """Create the bitmap from a buffer; parts outside the buffer stay transparent."""
        if buffer_width > 0 and buffer_height > 0 and buffer is None:
            raise BitmapError("Invalid buffer")
        fmt = TextureFormat(fmt)
        if palette is None and fmt is TextureFormat.PALETTED:
            palette = self._palette
            if palette is None:
                raise BitmapError("Palette is missing")
        self.init(width, height, fmt, palette)

        bpp = self.bpp
        copy_w = min(buffer_width, self._width)
        copy_h = min(buffer_height, self._height)
        row_size = copy_w * bpp
        if copy_w > 0 and copy_h > 0:
            needed = ((copy_h - 1) * buffer_width + copy_w) * bpp
            if len(buffer) < needed:
                raise BitmapError("Buffer is too small")
        for y in range(copy_h):
            src = y * buffer_width * bpp
            dst = y * self._width * bpp
            self.pixel_data[dst:dst + row_size] = buffer[src:src + row_size]

    def flip_vertical(self) -> None:
        """Mirror the image top to bottom."""
        row = self._width * self.bpp
        rows = [self.pixel_data[y * row:(y + 1) * row] for y in range(self._height)]
        self.pixel_data = bytearray(b"".join(reversed(rows)))