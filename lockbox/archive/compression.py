"""xz compression helpers."""

from __future__ import annotations

import lzma
import shutil
from pathlib import Path

from ..exceptions import CompressionError

XZ_PRESET = 9
_CHUNK_SIZE = 1024 * 1024


def compress_file(source: Path, preset: int = XZ_PRESET) -> Path:
    """Compress ``source`` to ``<source>.xz`` and remove the original."""
    source = Path(source)
    destination = source.with_name(source.name + ".xz")
    try:
        with source.open("rb") as src, lzma.open(destination, "wb", preset=preset) as dst:
            shutil.copyfileobj(src, dst, _CHUNK_SIZE)
    except (lzma.LZMAError, OSError) as exc:
        destination.unlink(missing_ok=True)
        raise CompressionError(f"Failed to compress {source}: {exc}") from exc
    source.unlink()
    return destination


def decompress_file(source: Path) -> Path:
    """Decompress ``<name>.xz`` next to itself and remove the compressed file."""
    source = Path(source)
    if source.suffix != ".xz":
        raise CompressionError(f"Not an xz file: {source}")
    destination = source.with_suffix("")
    try:
        with lzma.open(source, "rb") as src, destination.open("wb") as dst:
            shutil.copyfileobj(src, dst, _CHUNK_SIZE)
    except (lzma.LZMAError, EOFError, OSError) as exc:
        destination.unlink(missing_ok=True)
        raise CompressionError(f"Failed to decompress {source}: {exc}") from exc
    source.unlink()
    return destination
