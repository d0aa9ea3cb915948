"""
整合包校验数据模型

定义 manifest、模组文件元数据以及校验结果。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class FileStatus(Enum):
    """CurseForge 文件状态码"""

    PROCESSING = 1
    CHANGES_REQUIRED = 2
    UNDER_REVIEW = 3
    APPROVED = 4
    REJECTED = 5
    MALWARE_DETECTED = 6
    DELETED = 7
    ARCHIVED = 8
    TESTING = 9
    RELEASED = 10
    READY_FOR_REVIEW = 11
    DEPRECATED = 12
    BAKING = 13
    AWAITING_PUBLISHING = 14
    FAILED_PUBLISHING = 15
    UNKNOWN = 0

    @classmethod
    def from_code(cls, code) -> "FileStatus":
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        """人类可读的状态名"""
        return self.name.replace("_", " ").title()


@dataclass(frozen=True)
class ManifestFile:
    """manifest 中声明的模组文件"""

    project_id: int
    file_id: int
    required: bool = True


@dataclass
class Manifest:
    """
    整合包 manifest（CurseForge 格式）。
    """

    name: str
    version: str
    author: str
    minecraft_version: str
    mod_loaders: List[str]
    files: List[ManifestFile]
    overrides: str = "overrides"

    @property
    def file_ids(self) -> List[int]:
        return [f.file_id for f in self.files]

    @property
    def primary_loader(self) -> Optional[Tuple[str, str]]:
        """
        解析主加载器，例如 "forge-47.4.2" -> ("forge", "47.4.2")
        """
        if not self.mod_loaders:
            return None
        loader, _, version = self.mod_loaders[0].partition("-")
        return loader, version

    @classmethod
    def from_dict(cls, data: dict) -> "Manifest":
        """
        将 manifest.json 内容转换为 Manifest 对象。

        只有 files 是必需字段，缺少或格式错误时抛出 KeyError/TypeError/ValueError，
        由调用方转换为 InvalidArchive。
        """
        minecraft = data.get("minecraft") or {}
        loaders = minecraft.get("modLoaders", [])
        # 主加载器排在最前
        loaders = sorted(loaders, key=lambda l: not l.get("primary", False))
        files = [
            ManifestFile(
                project_id=int(f["projectID"]),
                file_id=int(f["fileID"]),
                required=bool(f.get("required", True)),
            )
            for f in data["files"]
        ]
        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            author=data.get("author", ""),
            minecraft_version=minecraft.get("version", ""),
            mod_loaders=[l["id"] for l in loaders],
            files=files,
            overrides=data.get("overrides") or "overrides",
        )


@dataclass(frozen=True)
class FileRecord:
    """元数据服务返回的文件记录"""

    id: int
    mod_id: int
    file_name: str
    download_url: Optional[str]
    file_status: FileStatus = FileStatus.UNKNOWN
    is_available: bool = True

    @classmethod
    def from_curseforge(cls, data: dict) -> "FileRecord":
        return cls(
            id=int(data["id"]),
            mod_id=int(data.get("modId", 0)),
            file_name=data.get("fileName", ""),
            download_url=data.get("downloadUrl") or None,
            file_status=FileStatus.from_code(data.get("fileStatus")),
            is_available=bool(data.get("isAvailable", True)),
        )


@dataclass(frozen=True)
class ModRecord:
    """元数据服务返回的模组记录（仅用于展示）"""

    id: int
    name: str
    slug: str
    website_url: Optional[str] = None

    @classmethod
    def from_curseforge(cls, data: dict) -> "ModRecord":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            website_url=(data.get("links") or {}).get("websiteUrl"),
        )


@dataclass
class ModFileInfo:
    """单个声明模组文件的解析结果"""

    id: int
    mod_id: int
    file_name: str
    download_url: Optional[str]
    file_status: FileStatus = FileStatus.UNKNOWN
    slug: Optional[str] = None
    website_url: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return bool(self.download_url)

    @classmethod
    def from_record(cls, record: FileRecord) -> "ModFileInfo":
        return cls(
            id=record.id,
            mod_id=record.mod_id,
            file_name=record.file_name,
            download_url=record.download_url,
            file_status=record.file_status,
        )

    @classmethod
    def unresolved(cls, file: ManifestFile) -> "ModFileInfo":
        """元数据缺失时的占位记录，按不可用处理"""
        return cls(id=file.file_id, mod_id=file.project_id, file_name="", download_url=None)


@dataclass
class ValidationResult:
    """整合包校验结果"""

    manifest: Manifest
    mods_without_url: List[ModFileInfo] = field(default_factory=list)
    mods_in_overrides: List[str] = field(default_factory=list)
    override_files: List[str] = field(default_factory=list)
    metadata_errors: list = field(default_factory=list)
    mod_records: Dict[int, ModRecord] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def missing_mods(self) -> List[ModFileInfo]:
        """没有下载地址且不在 overrides 中的模组"""
        present = {name.lower() for name in self.mods_in_overrides}
        return [
            mod
            for mod in self.mods_without_url
            if not mod.file_name or mod.file_name.lower() not in present
        ]

    @property
    def can_continue(self) -> bool:
        return self.error is None and not self.missing_mods
