"""
本地存储
"""

from packkeeper.storage.kv import JsonFileStore, MemoryStore
from packkeeper.storage.instances import InstanceStore
from packkeeper.storage.settings import LauncherSettings

__all__ = ["JsonFileStore", "MemoryStore", "InstanceStore", "LauncherSettings"]
