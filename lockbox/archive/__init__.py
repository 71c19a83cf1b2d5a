"""Artifact naming, compression and encryption."""

from .compression import compress_file, decompress_file
from .encryption import decrypt_file, encrypt_file
from .naming import (
    BACKUP_TYPES,
    POSTGRES,
    REDIS,
    VOLUME,
    ArtifactName,
    BackupType,
    get_backup_type,
    make_timestamp,
    parse_artifact_name,
    parse_s3_uri,
)

__all__ = [
    "compress_file",
    "decompress_file",
    "decrypt_file",
    "encrypt_file",
    "BACKUP_TYPES",
    "POSTGRES",
    "REDIS",
    "VOLUME",
    "ArtifactName",
    "BackupType",
    "get_backup_type",
    "make_timestamp",
    "parse_artifact_name",
    "parse_s3_uri",
]
