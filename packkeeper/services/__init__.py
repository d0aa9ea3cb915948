"""
服务层

提供版本比较、整合包校验、更新检查与安装等服务。
"""

from packkeeper.services.version_compare import VersionComparator, compare
from packkeeper.services.worker import ArchiveWorker
from packkeeper.services.manifest_validator import ManifestValidator
from packkeeper.services.update_channel import (
    BackgroundUpdateChecker,
    UpdateChannelResolver,
)
from packkeeper.services.update_installer import UpdateInstaller

__all__ = [
    "VersionComparator",
    "compare",
    "ArchiveWorker",
    "ManifestValidator",
    "BackgroundUpdateChecker",
    "UpdateChannelResolver",
    "UpdateInstaller",
]
