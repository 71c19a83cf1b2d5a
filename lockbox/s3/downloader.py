"""S3 file download utilities."""

from __future__ import annotations

import logging
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError

from ..archive import parse_s3_uri
from ..exceptions import DownloadError

LOGGER = logging.getLogger(__name__)


class FileDownloader:
    """Fetches backup archives from S3 to local storage."""

    def __init__(self, s3_client):
        self.s3_client = s3_client

    def download(self, uri: str, destination: Path) -> Path:
        """Download ``s3://bucket/key`` to ``destination``."""
        bucket, key = parse_s3_uri(uri)
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Downloading backup from %s", uri)
        try:
            self.s3_client.download_file(bucket, key, str(destination))
        except (BotoCoreError, ClientError, OSError) as exc:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download backup from {uri}: {exc}") from exc
        return destination
