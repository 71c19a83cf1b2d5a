"""Custom exception definitions for Lockbox."""


class LockboxError(Exception):
    """Base exception for the package."""


class ConfigurationError(LockboxError):
    """Raised when required configuration is missing or cannot be loaded."""


class ValidationError(LockboxError):
    """Raised when configuration or input validation fails."""


class DockerAccessError(LockboxError):
    """Raised when the Docker daemon cannot be reached or rejects a call."""


class ContainerNotFoundError(LockboxError):
    """Raised when a named container does not exist."""


class ContainerNotRunningError(LockboxError):
    """Raised when an operation needs a running container."""


class ContainerCommandError(LockboxError):
    """Raised when a command executed inside a container fails."""


class BackupError(LockboxError):
    """Raised when exporting data for a backup fails."""


class CompressionError(LockboxError):
    """Raised when xz compression or decompression fails."""


class EncryptionError(LockboxError):
    """Raised when creating or opening an encrypted archive fails."""


class S3AccessError(LockboxError):
    """Raised when accessing S3 resources fails."""


class UploadError(S3AccessError):
    """Raised when uploading an artifact fails."""


class DownloadError(S3AccessError):
    """Raised when downloading an artifact fails."""


class RestoreError(LockboxError):
    """Raised when restoring a backup fails."""
