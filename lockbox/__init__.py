"""Encrypted backups of labelled Docker volumes, PostgreSQL and Redis to S3."""

__version__ = "1.0.0"
