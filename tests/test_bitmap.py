import dataclasses

import pytest

from lstarchive.bitmap import (
    Bitmap,
    BitmapError,
    ColorBGRA,
    Palette,
    TextureFormat,
    get_global_texture_format,
    set_global_texture_format,
)


def make_palette():
    return Palette([(i, (i + 1) & 0xFF, (i + 2) & 0xFF) for i in range(256)])


@pytest.fixture
def palette():
    return make_palette()


@pytest.fixture
def restore_global_format():
    old = get_global_texture_format()
    yield
    set_global_texture_format(old)


def test_color_bgra_ctor():
    default = ColorBGRA()
    assert (default.alpha, default.red, default.green, default.blue) == (0, 0, 0, 0)
    clr = ColorBGRA(1, 2, 3, 4)
    assert clr.alpha == 4
    assert clr.red == 3
    assert clr.green == 2
    assert clr.blue == 1
    from_rgb = ColorBGRA.from_rgb(5, 6, 7)
    assert from_rgb.alpha == 0xFF
    assert from_rgb.rgb == (5, 6, 7)
    hex_clr = ColorBGRA.from_value(0x12345678)
    assert hex_clr.alpha == 0x12
    assert hex_clr.red == 0x34
    assert hex_clr.green == 0x56
    assert hex_clr.blue == 0x78
    assert hex_clr.value == 0x12345678


def test_color_bgra_component_replace():
    clr = ColorBGRA()
    clr = dataclasses.replace(clr, alpha=10)
    assert clr == ColorBGRA(0, 0, 0, 10)
    clr = dataclasses.replace(clr, red=20)
    assert clr == ColorBGRA(0, 0, 20, 10)
    clr = dataclasses.replace(clr, green=30)
    assert clr == ColorBGRA(0, 30, 20, 10)
    clr = dataclasses.replace(clr, blue=40)
    assert clr == ColorBGRA(40, 30, 20, 10)


def test_color_bgra_rejects_out_of_range():
    with pytest.raises(ValueError):
        ColorBGRA(256, 0, 0, 0)


def test_color_bgra_buffer():
    clr = ColorBGRA(1, 42, 24, 99)
    buf = bytes([clr.blue, clr.green, clr.red, clr.alpha])
    assert ColorBGRA.from_bytes(buf) == clr
    assert clr.to_bytes() == buf
    clr2 = ColorBGRA(5, 6, 23, 17)
    both = buf + clr2.to_bytes()
    assert ColorBGRA.from_bytes(both, 0) == clr
    assert ColorBGRA.from_bytes(both, 4) == clr2


def test_palette_get_set_lookup():
    pal = Palette()
    assert all(pal[i] == ColorBGRA.from_rgb(0, 0, 0) for i in range(256))
    for i in range(256):
        pal.set(i, ColorBGRA.from_rgb(i, (i + 1) & 0xFF, (i + 2) & 0xFF))
    for i in range(256):
        expected = ColorBGRA.from_rgb(i, (i + 1) & 0xFF, (i + 2) & 0xFF)
        assert pal.get(i) == expected
        assert pal[i] == expected
    with pytest.raises(IndexError):
        pal[256]
    for i in range(256):
        color = ColorBGRA.from_rgb(i, (i + 1) & 0xFF, (i + 2) & 0xFF)
        assert pal.lookup(color) == i
        assert pal.lookup_or_default(color) == i
    with pytest.raises(KeyError):
        pal.lookup(ColorBGRA.from_rgb(10, 20, 30))
    assert pal.lookup_or_default(ColorBGRA.from_rgb(10, 20, 30)) == 0
    assert pal.lookup_or_default(ColorBGRA.from_rgb(10, 20, 30), 1) == 1
    assert pal.lookup_or_default(ColorBGRA.from_rgb(10, 20, 30), 2) == 2
    assert pal.lookup_or_default(pal[5], 2) == 5
    bgra = b"".join(c.to_bytes() for c in pal)
    assert len(bgra) == 256 * 4
    for i in range(256):
        assert ColorBGRA.from_bytes(bgra, i * 4) == pal[i]


def test_palette_transparency_and_clone(palette):
    assert palette.is_transparent(0)
    assert not palette.is_transparent(1)
    assert palette.has_transparency()
    dup = palette.clone()
    assert dup == palette
    dup.set(3, (1, 1, 1))
    assert dup != palette
    opaque = Palette(transparent_index=None)
    assert not opaque.has_transparency()
    assert not opaque.is_transparent(0)


def test_create_paletted_and_read(palette):
    bmp = Bitmap()
    bmp.create(3, 2, bytes([1, 2]), 2, 1, TextureFormat.PALETTED, palette)
    assert (bmp.width, bmp.height) == (3, 2)
    assert bmp.pixel_data == bytearray([1, 2, 0, 0, 0, 0])
    assert bmp.get_pixel_index(1, 0) == 2
    assert bmp.get_pixel(0, 0) == ColorBGRA.from_rgb(1, 2, 3)
    assert bmp.get_pixel(2, 1) == ColorBGRA()


def test_convert_format_round_trip(palette):
    bmp = Bitmap()
    bmp.create(2, 1, bytes([0, 3]), 2, 1, TextureFormat.PALETTED, palette)
    bmp.convert_format(TextureFormat.BGRA)
    assert bmp.texture_format is TextureFormat.BGRA
    assert bmp.pixel_data == bytearray([0, 0, 0, 0, 5, 4, 3, 255])
    bmp.convert_format(TextureFormat.PALETTED)
    assert bmp.pixel_data == bytearray([0, 3])


def test_convert_without_palette_raises():
    bmp = Bitmap()
    bmp.init(1, 1, TextureFormat.BGRA)
    with pytest.raises(BitmapError):
        bmp.convert_format(TextureFormat.PALETTED)


def test_set_pixel_variants(palette):
    bmp = Bitmap()
    bmp.init(2, 1, TextureFormat.BGRA, palette)
    bmp.set_pixel(0, 0, 7)
    assert bmp.get_pixel(0, 0) == palette[7]
    bmp.set_pixel(0, 0, 0)
    assert bmp.get_pixel(0, 0).alpha == 0
    assert bmp.get_pixel_index(0, 0) == 0

    pal_bmp = Bitmap()
    pal_bmp.init(2, 1, TextureFormat.PALETTED, palette)
    pal_bmp.set_pixel_color(1, 0, palette[9])
    assert pal_bmp.get_pixel_index(1, 0) == 9
    pal_bmp.set_pixel_color(1, 0, ColorBGRA(1, 2, 3, 0))
    assert pal_bmp.get_pixel_index(1, 0) == 0
    with pytest.raises(IndexError):
        pal_bmp.set_pixel(2, 0, 1)


def test_visible_area(palette):
    bmp = Bitmap()
    bmp.init(4, 3, TextureFormat.PALETTED, palette)
    assert bmp.visible_area() == (0, 0, 0, 0)
    bmp.set_pixel(1, 1, 5)
    bmp.set_pixel(2, 2, 6)
    assert bmp.visible_area() == (1, 1, 2, 2)
    bmp.convert_format(TextureFormat.BGRA)
    assert bmp.visible_area() == (1, 1, 2, 2)


def test_print_paletted_with_offset(palette):
    bmp = Bitmap()
    bmp.create(2, 2, bytes([5, 6, 0, 7]), 2, 2, TextureFormat.PALETTED, palette)
    buffer = bytearray([9] * 9)
    bmp.print(buffer, 3, 3, TextureFormat.PALETTED, to_x=1, to_y=1)
    assert buffer == bytearray([9, 9, 9, 9, 5, 6, 9, 9, 7])


def test_print_to_bgra(palette):
    bmp = Bitmap()
    bmp.create(1, 1, bytes([5]), 1, 1, TextureFormat.PALETTED, palette)
    buffer = bytearray(4)
    bmp.print(buffer, 1, 1, TextureFormat.BGRA)
    assert buffer == bytearray([7, 6, 5, 255])


def test_print_invalid_buffer(palette):
    bmp = Bitmap()
    bmp.create(1, 1, bytes([5]), 1, 1, TextureFormat.PALETTED, palette)
    with pytest.raises(BitmapError):
        bmp.print(None, 1, 1, TextureFormat.PALETTED)


def test_flip_vertical(palette):
    bmp = Bitmap()
    bmp.create(1, 3, bytes([1, 2, 3]), 1, 3, TextureFormat.PALETTED, palette)
    bmp.flip_vertical()
    assert bmp.pixel_data == bytearray([3, 2, 1])


def test_check_palette(palette):
    bmp = Bitmap()
    bmp.create(2, 1, palette[4].to_bytes() + bytes(4), 2, 1, TextureFormat.BGRA)
    assert bmp.check_palette(palette)
    bmp.set_pixel_color(1, 0, ColorBGRA.from_rgb(1, 1, 1))
    assert not bmp.check_palette(palette)


def test_init_errors(palette):
    bmp = Bitmap()
    with pytest.raises(BitmapError):
        bmp.init(2, 2, TextureFormat.PALETTED, None)
    with pytest.raises(ValueError):
        bmp.init(2, 2, TextureFormat.ORIGINAL, palette)
    bmp.init(2, 2, TextureFormat.PALETTED, palette)
    with pytest.raises(BitmapError):
        bmp.remove_palette()
    bmp.init(0, 5, TextureFormat.PALETTED, palette)
    assert (bmp.width, bmp.height) == (0, 0)


def test_palette_is_copied(palette):
    bmp = Bitmap()
    bmp.init(1, 1, TextureFormat.PALETTED, palette)
    palette.set(1, (9, 9, 9))
    assert bmp.palette[1] == ColorBGRA.from_rgb(1, 2, 3)


def test_global_texture_format(restore_global_format):
    set_global_texture_format(TextureFormat.BGRA)
    assert get_global_texture_format() is TextureFormat.BGRA
    assert Bitmap.wanted_format(TextureFormat.PALETTED) is TextureFormat.BGRA
    set_global_texture_format(TextureFormat.ORIGINAL)
    assert Bitmap.wanted_format(TextureFormat.PALETTED) is TextureFormat.PALETTED