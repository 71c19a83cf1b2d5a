"""Password protected 7z archives (LZMA2 + AES-256, encrypted headers)."""

from __future__ import annotations

import logging
import lzma
from pathlib import Path
from typing import List

import py7zr
from py7zr.exceptions import ArchiveError, PasswordRequired

from ..exceptions import EncryptionError

LOGGER = logging.getLogger(__name__)

SEVEN_ZIP_FILTERS = [
    {"id": py7zr.FILTER_LZMA2, "preset": 9},
    {"id": py7zr.FILTER_CRYPTO_AES256_SHA256},
]


def encrypt_file(source: Path, destination: Path, password: str) -> Path:
    """Pack ``source`` into an encrypted 7z archive and remove the source."""
    source = Path(source)
    destination = Path(destination)
    if not password:
        raise EncryptionError("A password is required to encrypt backups.")
    try:
        with py7zr.SevenZipFile(
            destination,
            "w",
            filters=SEVEN_ZIP_FILTERS,
            password=password,
            header_encryption=True,
        ) as archive:
            archive.write(source, arcname=source.name)
    except (ArchiveError, lzma.LZMAError, OSError) as exc:
        destination.unlink(missing_ok=True)
        raise EncryptionError(f"Failed to encrypt {source}: {exc}") from exc
    source.unlink()
    LOGGER.debug("Encrypted %s -> %s", source.name, destination)
    return destination


def decrypt_file(archive_path: Path, output_dir: Path, password: str) -> List[Path]:
    """Extract an encrypted 7z archive into ``output_dir``; return the extracted files."""
    archive_path = Path(archive_path)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    try:
        with py7zr.SevenZipFile(archive_path, "r", password=password) as archive:
            names = archive.getnames()
            archive.extractall(path=output_dir)
    except (
        ArchiveError,
        PasswordRequired,
        lzma.LZMAError,
        ValueError,
        TypeError,
        KeyError,
        EOFError,
        OSError,
    ) as exc:
        # py7zr surfaces a wrong header password as a header parsing error
        raise EncryptionError(f"Failed to decrypt backup file {archive_path}: {exc}") from exc
    return [output_dir / name for name in names if (output_dir / name).is_file()]
