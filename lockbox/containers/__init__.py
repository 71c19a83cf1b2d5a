"""Docker label discovery and the per-type backup strategies."""

from .base import BackupTarget, ContainerStrategy
from .postgres import PostgresStrategy
from .redis import RedisStrategy
from .volume import VolumeStrategy

STRATEGIES = {
    VolumeStrategy.backup_type.kind: VolumeStrategy,
    PostgresStrategy.backup_type.kind: PostgresStrategy,
    RedisStrategy.backup_type.kind: RedisStrategy,
}

__all__ = [
    "BackupTarget",
    "ContainerStrategy",
    "PostgresStrategy",
    "RedisStrategy",
    "VolumeStrategy",
    "STRATEGIES",
]
