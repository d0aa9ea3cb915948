"""
协作方接口与远程客户端
"""

from packkeeper.api.base import (
    Catalog,
    GameRuntime,
    KeyValueStore,
    MetadataService,
    NativeUpdater,
    ProgressCallback,
    ReleaseRegistry,
    UpdateEventCallback,
)
from packkeeper.api.curseforge import CurseForgeClient
from packkeeper.api.github import GitHubReleaseClient

__all__ = [
    "Catalog",
    "GameRuntime",
    "KeyValueStore",
    "MetadataService",
    "NativeUpdater",
    "ProgressCallback",
    "ReleaseRegistry",
    "UpdateEventCallback",
    "CurseForgeClient",
    "GitHubReleaseClient",
]
