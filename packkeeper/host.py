"""
宿主环境信息
"""

import platform as _platform
from dataclasses import dataclass, field
from typing import Optional

import packkeeper
from packkeeper.api.base import NativeUpdater
from packkeeper.exceptions import UpdateInstallFailed
from packkeeper.models import NativeArtifact, OperationResult


def detect_platform() -> str:
    """返回 windows / linux / macos"""
    system = _platform.system().lower()
    if system.startswith("win"):
        return "windows"
    if system == "darwin":
        return "macos"
    return "linux" if system == "linux" else system or "unknown"


@dataclass(frozen=True)
class HostEnvironment:
    """当前运行的启动器版本与平台标识"""

    current_version: str = packkeeper.__version__
    platform: str = field(default_factory=detect_platform)


class NullNativeUpdater(NativeUpdater):
    """没有平台原生更新器时使用：稳定渠道永远没有更新"""

    async def check_stable(self) -> Optional[NativeArtifact]:
        return None

    async def download_and_install(self, artifact: NativeArtifact, on_event) -> OperationResult:
        raise UpdateInstallFailed("当前环境没有可用的原生更新器")

    async def relaunch(self) -> None:
        raise UpdateInstallFailed("当前环境不支持自动重启")
