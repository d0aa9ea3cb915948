"""
启动器更新数据模型
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union


class Channel(Enum):
    """发布渠道"""

    STABLE = "stable"
    EXPERIMENTAL = "experimental"


@dataclass(frozen=True)
class ReleaseAsset:
    name: str
    download_url: str
    size: int = 0


@dataclass(frozen=True)
class Release:
    """发布仓库中的一个版本（按新到旧排列）"""

    tag: str
    prerelease: bool
    notes: str = ""
    html_url: str = ""
    published_at: str = ""
    assets: tuple = ()

    @property
    def version(self) -> str:
        return self.tag.lstrip("vV")

    @classmethod
    def from_github(cls, data: dict) -> "Release":
        """将 GitHub releases API 返回的条目转换为 Release 对象。"""
        assets = tuple(
            ReleaseAsset(
                name=a.get("name", ""),
                download_url=a.get("browser_download_url", ""),
                size=int(a.get("size", 0)),
            )
            for a in data.get("assets", [])
        )
        return cls(
            tag=data["tag_name"],
            prerelease=bool(data.get("prerelease", False)),
            notes=data.get("body") or "",
            html_url=data.get("html_url", ""),
            published_at=data.get("published_at") or "",
            assets=assets,
        )


@dataclass(frozen=True)
class NativeArtifact:
    """
    可由本机更新器下载并校验签名的更新。

    只有这个变体携带可安装的 payload。
    """

    version: str
    notes: str = ""
    payload: Any = None


@dataclass(frozen=True)
class RegistryRelease:
    """仅来自发布仓库、没有签名清单的版本，只能引导用户打开下载页"""

    version: str
    download_url: str
    notes: str = ""
    prerelease: bool = False


ResolvedUpdate = Union[NativeArtifact, RegistryRelease]


@dataclass
class UpdateInfo:
    """更新检查结果"""

    has_update: bool
    current_version: str
    latest_version: str
    platform: str
    release_notes: Optional[str] = None
    is_prerelease: bool = False
    download_url: Optional[str] = None
    resolved: Optional[ResolvedUpdate] = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "hasUpdate": self.has_update,
            "currentVersion": self.current_version,
            "latestVersion": self.latest_version,
            "platform": self.platform,
            "releaseNotes": self.release_notes,
            "isPrerelease": self.is_prerelease,
            "downloadUrl": self.download_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UpdateInfo":
        return cls(
            has_update=bool(data["hasUpdate"]),
            current_version=data["currentVersion"],
            latest_version=data["latestVersion"],
            platform=data["platform"],
            release_notes=data.get("releaseNotes"),
            is_prerelease=bool(data.get("isPrerelease", False)),
            download_url=data.get("downloadUrl"),
        )


class UpdateEventKind(Enum):
    """本机更新器下载事件"""

    STARTED = "started"
    PROGRESS = "progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class UpdateEvent:
    kind: UpdateEventKind
    content_length: Optional[int] = None
    chunk_length: int = 0


class InstallAction(Enum):
    """安装结束后需要用户或程序执行的动作"""

    RELAUNCHING = "relaunching"
    RESTART_REQUIRED = "restart_required"
    OPEN_DOWNLOAD_PAGE = "open_download_page"


@dataclass
class InstallOutcome:
    action: InstallAction
    message: str
    url: Optional[str] = None


__all__: List[str] = [
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
