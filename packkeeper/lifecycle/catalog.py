"""
整合包目录

后端目录的内存实现，可从后端返回的字典列表加载。
"""

from typing import Dict, Iterable, List, Optional

from loguru import logger

from packkeeper.api.base import Catalog
from packkeeper.models import ModpackDescriptor


class StaticCatalog(Catalog):
    """内存目录"""

    def __init__(self, descriptors: Iterable[ModpackDescriptor] = ()):
        self._entries: Dict[str, ModpackDescriptor] = {}
        self.replace(descriptors)

    @classmethod
    def from_dicts(cls, entries: Iterable[dict]) -> "StaticCatalog":
        descriptors = []
        for entry in entries:
            try:
                descriptors.append(ModpackDescriptor.from_dict(entry))
            except (KeyError, TypeError) as e:
                logger.warning(f"[目录] 跳过无效条目 {entry!r}: {e}")
        return cls(descriptors)

    def replace(self, descriptors: Iterable[ModpackDescriptor]):
        """整体替换目录内容（刷新后端目录时使用）"""
        self._entries = {d.id: d for d in descriptors}
        logger.debug(f"[目录] 已加载 {len(self._entries)} 个整合包")

    async def get(self, modpack_id: str) -> Optional[ModpackDescriptor]:
        return self._entries.get(modpack_id)

    async def list(self) -> List[ModpackDescriptor]:
        return list(self._entries.values())
