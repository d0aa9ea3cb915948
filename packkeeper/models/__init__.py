"""
PackKeeper 数据模型包

包含配置模型、整合包模型、校验模型和更新模型定义。
"""

from packkeeper.models.config import (
    ApiConfig,
    PathsConfig,
    UpdatesConfig,
    ValidationConfig,
    ProgressConfig,
    LauncherConfig,
)
from packkeeper.models.modpack import (
    ModpackStatus,
    ModpackDescriptor,
    ModpackProgress,
    ModpackRuntimeState,
    InstanceMetadata,
    FailedMod,
    OperationResult,
)
from packkeeper.models.validation import (
    FileStatus,
    ManifestFile,
    Manifest,
    FileRecord,
    ModRecord,
    ModFileInfo,
    ValidationResult,
)
from packkeeper.models.update import (
    Channel,
    ReleaseAsset,
    Release,
    NativeArtifact,
    RegistryRelease,
    ResolvedUpdate,
    UpdateInfo,
    UpdateEventKind,
    UpdateEvent,
    InstallAction,
    InstallOutcome,
)

__all__ = [
    # 配置模型
    "ApiConfig",
    "PathsConfig",
    "UpdatesConfig",
    "ValidationConfig",
    "ProgressConfig",
    "LauncherConfig",
    # 整合包模型
    "ModpackStatus",
    "ModpackDescriptor",
    "ModpackProgress",
    "ModpackRuntimeState",
    "InstanceMetadata",
    "FailedMod",
    "OperationResult",
    # 校验模型
    "FileStatus",
    "ManifestFile",
    "Manifest",
    "FileRecord",
    "ModRecord",
    "ModFileInfo",
    "ValidationResult",
    # 更新模型
    "Channel",
    "ReleaseAsset",
    "Release",
    "NativeArtifact",
    "RegistryRelease",
    "ResolvedUpdate",
    "UpdateInfo",
    "UpdateEventKind",
    "UpdateEvent",
    "InstallAction",
    "InstallOutcome",
]
