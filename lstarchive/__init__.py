"""Archives, palettes, bitmap encodings, bobs and fonts of LST-style game asset files."""

__version__ = "0.1.0"

__all__ = ["archive", "bitmap", "bitmap_formats", "bitmap_player", "bob", "font"]