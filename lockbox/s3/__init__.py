"""S3 integration helpers."""

from .downloader import FileDownloader
from .file_collector import S3FileCollector, S3FileInfo
from .uploader import S3Uploader

__all__ = [
    "FileDownloader",
    "S3FileCollector",
    "S3FileInfo",
    "S3Uploader",
]
