from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from packkeeper.models import (
    FileRecord,
    ModpackDescriptor,
    ModRecord,
    NativeArtifact,
    OperationResult,
    Release,
    UpdateEvent,
)

ProgressCallback = Callable[[int, int], None]
UpdateEventCallback = Callable[[UpdateEvent], None]


class GameRuntime(ABC):
    """
    游戏运行时协作方：负责实际的下载、解压与 JVM 启动。

    on_progress 可在任意线程调用。
    """

    @abstractmethod
    async def install_archive(
        self, descriptor: ModpackDescriptor, on_progress: ProgressCallback
    ) -> OperationResult:
        pass

    @abstractmethod
    async def launch(
        self, descriptor: ModpackDescriptor, settings: Optional[dict] = None
    ) -> OperationResult:
        pass

    @abstractmethod
    async def delete_instance(self, modpack_id: str) -> OperationResult:
        pass


class MetadataService(ABC):
    """模组元数据服务，单次请求最多 50 个 id"""

    @abstractmethod
    async def resolve_files(self, file_ids: List[int]) -> List[FileRecord]:
        """
        通过文件 id 批量获取文件记录。
        """
        pass

    @abstractmethod
    async def resolve_mods(self, mod_ids: List[int]) -> List[ModRecord]:
        """
        通过模组 id 批量获取模组记录（slug、网站地址）。
        """
        pass


class NativeUpdater(ABC):
    """平台原生更新器，负责下载、签名校验与安装"""

    @abstractmethod
    async def check_stable(self) -> Optional[NativeArtifact]:
        pass

    @abstractmethod
    async def download_and_install(
        self, artifact: NativeArtifact, on_event: UpdateEventCallback
    ) -> OperationResult:
        pass

    @abstractmethod
    async def relaunch(self) -> None:
        pass


class ReleaseRegistry(ABC):
    @abstractmethod
    async def list_releases(self) -> List[Release]:
        """
        获取发布列表，按新到旧排列。
        """
        pass


class KeyValueStore(ABC):
    """本地持久化键值存储"""

    @abstractmethod
    def get(self, key: str, default=None):
        pass

    @abstractmethod
    def set(self, key: str, value) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class Catalog(ABC):
    """整合包目录"""

    @abstractmethod
    async def get(self, modpack_id: str) -> Optional[ModpackDescriptor]:
        pass

    @abstractmethod
    async def list(self) -> List[ModpackDescriptor]:
        pass
