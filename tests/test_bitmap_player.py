import io
import struct

import pytest

from lstarchive.archive import BobType
from lstarchive.bitmap import (
    BitmapError,
    Palette,
    TextureFormat,
    set_global_texture_format,
)
from lstarchive.bitmap_player import PLAYER_TRANSPARENT_INDEX, BitmapPlayer


@pytest.fixture(autouse=True)
def _reset_format():
    yield
    set_global_texture_format(TextureFormat.ORIGINAL)


@pytest.fixture
def palette():
    return Palette([(i, i, 0) for i in range(256)], transparent_index=0)


def _make(palette, row=(0, 11, 20), player_start=10):
    bmp = BitmapPlayer()
    bmp.create(len(row), 1, bytes(row), len(row), 1, TextureFormat.PALETTED, palette, player_start)
    return bmp


def _round_trip(bmp, palette):
    stream = io.BytesIO()
    bmp.write(stream, palette)
    stream.seek(0)
    loaded = BitmapPlayer()
    loaded.load(stream, palette)
    return loaded, stream


def test_bob_type():
    assert BitmapPlayer().bob_type is BobType.BITMAP_PLAYER


def test_create_paletted_separates_player_colors(palette):
    bmp = _make(palette)
    assert not bmp.is_player_color(0, 0)
    assert bmp.is_player_color(1, 0)
    assert bmp.get_player_color_index(1, 0) == 1
    assert bmp.get_player_color_index(2, 0) == PLAYER_TRANSPARENT_INDEX
    # the base pixel under a player pixel becomes transparent
    assert bmp.get_pixel_index(1, 0) == palette.transparent_index
    assert bmp.get_pixel_index(2, 0) == 20


def test_create_requires_palette():
    with pytest.raises(BitmapError):
        BitmapPlayer().create(1, 1, b"\x01", 1, 1, TextureFormat.PALETTED, None)


def test_create_invalid_buffer(palette):
    with pytest.raises(BitmapError):
        BitmapPlayer().create(1, 1, None, 1, 1, TextureFormat.PALETTED, palette)


def test_write_wire_bytes(palette):
    bmp = _make(palette, row=(5, 5), player_start=128)
    stream = io.BytesIO()
    bmp.write(stream, palette)
    expected = struct.pack("<hhIHHHI", 0, 0, 0, 2, 1, 1, 4) + struct.pack("<H", 2) + bytes((0xC2, 5))
    assert stream.getvalue() == expected


def test_round_trip_keeps_layers(palette):
    bmp = _make(palette, row=(0, 11, 11, 20, 20, 0, 13))
    bmp.nx, bmp.ny = -3, 7
    loaded, stream = _round_trip(bmp, palette)
    assert stream.read() == b""
    assert (loaded.width, loaded.height) == (bmp.width, bmp.height)
    assert (loaded.nx, loaded.ny) == (-3, 7)
    for x in range(bmp.width):
        assert loaded.get_player_color_index(x, 0) == bmp.get_player_color_index(x, 0)
        if not bmp.is_player_color(x, 0):
            assert loaded.get_pixel_index(x, 0) == bmp.get_pixel_index(x, 0)


def test_round_trip_long_runs(palette):
    row = [20] * 70 + [0] * 70 + [10] * 70
    bmp = _make(palette, row=row, player_start=10)
    loaded, _ = _round_trip(bmp, palette)
    assert [loaded.get_player_color_index(x, 0) for x in range(210)] == \
        [bmp.get_player_color_index(x, 0) for x in range(210)]
    assert [loaded.get_pixel_index(x, 0) for x in range(140)] == row[:140]


def test_write_is_stable_after_reload(palette):
    bmp = _make(palette, row=(0, 11, 12, 20))
    loaded, first = _round_trip(bmp, palette)
    second = io.BytesIO()
    loaded.write(second, palette)
    assert second.getvalue() == first.getvalue()


def test_load_rows_absolute(palette):
    bmp = BitmapPlayer()
    bmp.load_rows(2, bytes((0x42, 7, 9, 0x82, 1)), [0, 3], True, palette)
    assert (bmp.width, bmp.height) == (2, 2)
    assert bmp.get_pixel_index(0, 0) == 7
    assert bmp.get_pixel_index(1, 0) == 9
    assert bmp.get_player_color_index(0, 1) == 1
    assert bmp.get_player_color_index(1, 1) == 1
    assert bmp.get_pixel_index(0, 1) == 129


def test_load_rows_corrupt(palette):
    with pytest.raises(BitmapError):
        BitmapPlayer().load_rows(4, bytes((0xC1,)), [0], True, palette)


def test_load_rows_start_past_data(palette):
    with pytest.raises(BitmapError):
        BitmapPlayer().load_rows(2, bytes((0x02,)), [50], True, palette)


def test_load_wrong_header(palette):
    data = struct.pack("<hhIHHHI", 0, 0, 1, 1, 1, 1, 2) + b"\x02\x00"
    with pytest.raises(BitmapError):
        BitmapPlayer().load(io.BytesIO(data), palette)


def test_load_length_too_small(palette):
    data = struct.pack("<hhIHHHI", 0, 0, 0, 1, 2, 1, 2) + b"\x00" * 4
    with pytest.raises(BitmapError):
        BitmapPlayer().load(io.BytesIO(data), palette)


def test_load_truncated(palette):
    with pytest.raises(BitmapError):
        BitmapPlayer().load(io.BytesIO(b"\x00\x00"), palette)


def test_load_requires_palette(palette):
    stream = io.BytesIO()
    _make(palette).write(stream, palette)
    stream.seek(0)
    with pytest.raises(BitmapError):
        BitmapPlayer().load(stream, None)


def test_load_bgra_global_format(palette):
    bmp = _make(palette)
    stream = io.BytesIO()
    bmp.write(stream, palette)
    stream.seek(0)
    set_global_texture_format(TextureFormat.BGRA)
    loaded = BitmapPlayer()
    loaded.load(stream, palette)
    assert loaded.texture_format is TextureFormat.BGRA
    assert loaded.palette is None
    assert loaded.get_pixel(2, 0) == palette.get(20)
    assert loaded.get_player_color_index(1, 0) == 1


def test_print_paletted(palette):
    bmp = _make(palette)
    buffer = bytearray(3)
    bmp.print(buffer, 3, 1, TextureFormat.PALETTED, palette, 40)
    assert buffer == bytearray((0, 41, 20))


def test_print_only_player(palette):
    bmp = _make(palette)
    buffer = bytearray(3)
    bmp.print(buffer, 3, 1, TextureFormat.PALETTED, palette, 40, only_player=True)
    assert buffer == bytearray((0, 41, 0))


def test_print_with_offset(palette):
    bmp = _make(palette)
    buffer = bytearray(4)
    bmp.print(buffer, 4, 1, TextureFormat.PALETTED, palette, 40, to_x=1)
    assert buffer == bytearray((0, 0, 41, 20))


def test_print_bgra(palette):
    bmp = _make(palette)
    buffer = bytearray(12)
    bmp.print(buffer, 3, 1, TextureFormat.BGRA, palette, 10)
    assert buffer[4:8] == palette.get(11).to_bytes()
    assert buffer[8:12] == palette.get(20).to_bytes()
    assert buffer[0:4] == bytes(4)


def test_print_missing_palette():
    bmp = BitmapPlayer()
    with pytest.raises(BitmapError):
        bmp.print(bytearray(1), 1, 1, TextureFormat.PALETTED, None)


def test_create_bgra(palette):
    pixels = palette.get(5).to_bytes() + palette.get(12).to_bytes()
    bmp = BitmapPlayer()
    bmp.create(2, 1, pixels, 2, 1, TextureFormat.BGRA, palette, 10)
    assert bmp.texture_format is TextureFormat.BGRA
    assert bmp.palette is None
    assert not bmp.is_player_color(0, 0)
    assert bmp.get_player_color_index(1, 0) == 2
    assert bmp.get_pixel(1, 0) == palette.get(12)


def test_visible_area_counts_player_pixels(palette):
    bmp = _make(palette, row=(0, 0, 11, 0, 0))
    assert bmp.visible_area() == (2, 0, 1, 1)


def test_visible_area_empty():
    assert BitmapPlayer().visible_area() == (0, 0, 0, 0)


def test_clear_resets_player_layer(palette):
    bmp = _make(palette)
    bmp.clear()
    assert (bmp.width, bmp.height) == (0, 0)
    with pytest.raises(IndexError):
        bmp.is_player_color(0, 0)


def test_init_resets_player_layer(palette):
    bmp = _make(palette)
    bmp.init(3, 1, TextureFormat.PALETTED, palette)
    assert all(not bmp.is_player_color(x, 0) for x in range(3))


def test_clone_is_independent(palette):
    bmp = _make(palette)
    copy = bmp.clone()
    bmp.init(1, 1, TextureFormat.PALETTED, palette)
    assert copy.width == 3
    assert copy.get_player_color_index(1, 0) == 1