"""
Assistant Common Module

Shared infrastructure: configuration, Box gateway, cache ports and schemas.
"""

from .config import AssistantConfig, ClientLimits, ConfigError, load_config
from .box_client import BoxClient, FileInfo, FolderInfo, FolderItem
from .cache import CachePort, MemoryCache, RedisCache, TieredCache
from .deadline import Deadline, DeadlineExceeded

__all__ = [
    "AssistantConfig",
    "ClientLimits",
    "ConfigError",
    "load_config",
    "BoxClient",
    "FileInfo",
    "FolderInfo",
    "FolderItem",
    "CachePort",
    "MemoryCache",
    "RedisCache",
    "TieredCache",
    "Deadline",
    "DeadlineExceeded",
]
