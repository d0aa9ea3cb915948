"""
整合包数据模型

定义目录条目、实例元数据、运行时状态以及运行时协作方的返回结果。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class ModpackStatus(Enum):
    """整合包状态"""

    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    OUTDATED = "outdated"
    INSTALLING = "installing"
    UPDATING = "updating"
    LAUNCHING = "launching"
    REPAIRING = "repairing"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        return self in BUSY_STATUSES

    @property
    def is_stable(self) -> bool:
        return self in (
            ModpackStatus.NOT_INSTALLED,
            ModpackStatus.INSTALLED,
            ModpackStatus.OUTDATED,
        )


BUSY_STATUSES = frozenset(
    {
        ModpackStatus.INSTALLING,
        ModpackStatus.UPDATING,
        ModpackStatus.LAUNCHING,
        ModpackStatus.REPAIRING,
    }
)


@dataclass(frozen=True)
class ModpackDescriptor:
    """
    目录中的整合包条目。

    不可变；archive_url 为空时表示仅连接型服务器（如原版/Paper 服务器）。
    """

    id: str
    version: str
    minecraft_version: str
    modloader: str
    modloader_version: str
    archive_url: Optional[str] = None
    name: str = ""
    ip: Optional[str] = None

    @property
    def has_archive(self) -> bool:
        return bool(self.archive_url and self.archive_url.strip())

    @classmethod
    def from_dict(cls, data: dict) -> "ModpackDescriptor":
        """
        将后端目录返回的条目转换为 ModpackDescriptor 对象。

        同时接受驼峰（后端原始字段）和下划线两种写法。
        """

        def pick(*keys, default=None):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        return cls(
            id=str(data["id"]),
            version=str(pick("version", default="")),
            minecraft_version=str(
                pick("minecraftVersion", "minecraft_version", default="")
            ),
            modloader=str(pick("modloader", default="")),
            modloader_version=str(
                pick("modloaderVersion", "modloader_version", default="")
            ),
            archive_url=pick("urlModpackZip", "archive_url"),
            name=str(pick("name", default="")),
            ip=pick("ip"),
        )


@dataclass
class ModpackProgress:
    """对观察者公开的进度（仅平滑后的百分比）"""

    downloaded_bytes: int = 0
    total_bytes: int = 0
    percentage: float = 0.0
    current_speed: float = 0.0
    eta_seconds: Optional[float] = None


@dataclass
class ModpackRuntimeState:
    """单个整合包的运行时状态，只能由生命周期控制器修改"""

    id: str
    status: ModpackStatus = ModpackStatus.NOT_INSTALLED
    progress: ModpackProgress = field(default_factory=ModpackProgress)
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    def snapshot(self) -> "ModpackRuntimeState":
        return ModpackRuntimeState(
            id=self.id,
            status=self.status,
            progress=ModpackProgress(**vars(self.progress)),
            error_kind=self.error_kind,
            error_message=self.error_message,
        )


@dataclass
class InstanceMetadata:
    """已安装实例的磁盘元数据"""

    id: str
    version: str
    installed_at: str
    name: str = ""
    modloader: str = ""
    modloader_version: str = ""
    minecraft_version: str = ""

    @classmethod
    def for_descriptor(cls, descriptor: ModpackDescriptor) -> "InstanceMetadata":
        return cls(
            id=descriptor.id,
            version=descriptor.version,
            installed_at=datetime.now(timezone.utc).isoformat(),
            name=descriptor.name,
            modloader=descriptor.modloader,
            modloader_version=descriptor.modloader_version,
            minecraft_version=descriptor.minecraft_version,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "installedAt": self.installed_at,
            "modloader": self.modloader,
            "modloaderVersion": self.modloader_version,
            "minecraftVersion": self.minecraft_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InstanceMetadata":
        if not isinstance(data, dict):
            raise ValueError(f"实例元数据必须是对象，实际为 {type(data).__name__}")
        return cls(
            id=str(data["id"]),
            version=str(data["version"]),
            installed_at=str(data.get("installedAt", "")),
            name=data.get("name", ""),
            modloader=data.get("modloader", ""),
            modloader_version=data.get("modloaderVersion", ""),
            minecraft_version=data.get("minecraftVersion", ""),
        )


@dataclass(frozen=True)
class FailedMod:
    """运行时未能下载的模组"""

    project_id: int
    file_id: int
    file_name: str

    @classmethod
    def from_dict(cls, data: dict) -> "FailedMod":
        return cls(
            project_id=int(data.get("projectId", data.get("project_id", 0))),
            file_id=int(data.get("fileId", data.get("file_id", 0))),
            file_name=data.get("fileName", data.get("file_name", "")),
        )


@dataclass
class OperationResult:
    """运行时协作方的操作结果"""

    success: bool
    message: str = ""
    failed_mods: List[FailedMod] = field(default_factory=list)
