# lstarchive

A pure-Python library for the items found in the LST/BOB asset files of a
classic settlers strategy game. It decodes the game's bitmap encodings from
binary streams into memory, lets you edit them, and encodes them again.

## Modules

- `lstarchive.archive`
  - `Archive`: an ordered sequence of slots, each holding an item or `None`.
    `alloc`, `alloc_inc`, `clear`, `set` / `set_copy`, `push` / `push_copy`,
    `find` (by name), `release`, `get` (returns `None` when out of range) and
    `copy` (copies every item). `set` raises `IndexError` for a missing slot.
  - `ArchiveItem`: base class with a `bob_type` and a `name`
    (default `"untitled"`); `clone()` returns a deep copy.
  - `BobType`: the numeric type tags of items.
- `lstarchive.bitmap`
  - `ColorBGRA`: an immutable color (`from_value`, `from_rgb`, `from_bytes`,
    `to_bytes`, `value`, `rgb`).
  - `Palette`: 256 RGB colors with an optional `transparent_index`
    (default 0). `get`, `set`, `lookup` (raises `KeyError` for unknown
    colors), `lookup_or_default`, `is_transparent`, `has_transparency`.
  - `TextureFormat` (`ORIGINAL`, `PALETTED`, `BGRA`) and
    `get_global_texture_format` / `set_global_texture_format`: the format
    bitmaps are converted to when loaded (`ORIGINAL` keeps their own).
  - `BitmapBase`: pixel storage with origin (`nx`, `ny`), format and a
    private palette copy. `init`, `clear`, `set_pixel`, `set_pixel_color`,
    `get_pixel_index`, `get_pixel`, `convert_format`, `visible_area`,
    `check_palette`, `set_palette`, `remove_palette`.
  - `Bitmap`: adds `print` (draw into a paletted or BGRA buffer, skipping
    transparent pixels), `create` (build from a buffer) and `flip_vertical`.
  - `BitmapError`: raised for missing palettes, invalid buffers and
    malformed or truncated data.
- `lstarchive.bitmap_formats`: `BitmapRaw` (uncompressed), `BitmapRLE`
  (run-length encoded) and `BitmapShadow` (shadow shapes), each with
  `load(stream, palette)` and `write(stream, palette)`.
- `lstarchive.bitmap_player`: `BitmapPlayer`, a bitmap with a separate
  player-color layer (`is_player_color`, `get_player_color_index`). Its
  `create` and `print` map the four palette shades starting at
  `player_start` (default 128) to and from that layer; `print` can draw the
  player layer alone with `only_player=True`.
- `lstarchive.bob`
  - `Bob`: a figure archive of 96 body images followed by overlay images.
    `load` reads a bob stream; `get_body(fat, direction, step)`,
    `get_overlay(overlay, fat, direction, step)` and `get_overlay_index`
    look images up; `write_links` / `read_links` save and read the link
    table as text. `write` always raises `BitmapError`.
  - `ImgDir`: the six facing directions.
  - `load_mapping(stream)`: yields `(index, value)` pairs from
    `<index> <value>` lines, skipping empty lines and `#` comments, and
    raises `ValueError` naming the line for malformed ones.
- `lstarchive.font`: `Font`, an archive of glyph items with letter spacing
  (`dx`, `dy`) in the 8-bit (256 glyphs) or unicode variant (`is_unicode`).
  Glyphs may be raw, RLE, shadow or player bitmaps.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
import io
from lstarchive.archive import Archive
from lstarchive.bitmap import ColorBGRA, Palette, TextureFormat
from lstarchive.bitmap_formats import BitmapRLE

palette = Palette()
for i in range(256):
    palette.set(i, ColorBGRA(i, i, i, 0xFF))

bmp = BitmapRLE()
bmp.init(4, 2, TextureFormat.PALETTED, palette)
bmp.set_pixel(1, 0, 17)

out = io.BytesIO()
bmp.write(out, palette)

out.seek(0)
loaded = BitmapRLE()
loaded.load(out, palette)
assert loaded.get_pixel_index(1, 0, palette) == 17

archive = Archive()
archive.push(loaded)
assert archive.get(0) is loaded
```

## What it does not do

- It works on single items and binary streams only: there is no function
  that opens a whole archive file and picks item types by extension, and
  no reading of palette files; palettes are built in code.
- Sounds, texts, maps, INI sections and palette animations are not
  supported.
- Bob files can be read but not written.
- There is no command-line tool.