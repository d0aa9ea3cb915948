"""
实例元数据存储

每个已安装实例在 instances/<id>/instance.json 中保存版本与安装时间。
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

import aiofiles
from loguru import logger

from packkeeper.models import InstanceMetadata

METADATA_FILE = "instance.json"
STAGED_SUFFIX = ".bak"


class InstanceStore:
    """实例元数据存储"""

    def __init__(self, instances_dir: Union[str, Path]):
        self.instances_dir = Path(instances_dir)

    def instance_dir(self, modpack_id: str) -> Path:
        return self.instances_dir / modpack_id

    def _metadata_path(self, modpack_id: str) -> Path:
        return self.instance_dir(modpack_id) / METADATA_FILE

    def _staged_path(self, modpack_id: str) -> Path:
        return self.instance_dir(modpack_id) / (METADATA_FILE + STAGED_SUFFIX)

    async def read(self, modpack_id: str) -> Optional[InstanceMetadata]:
        """读取实例元数据，不存在或损坏时返回 None"""
        path = self._metadata_path(modpack_id)
        if not path.exists():
            return None
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            return InstanceMetadata.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"[实例] 元数据 {path} 无法读取: {e}")
            return None

    async def write(self, metadata: InstanceMetadata):
        """写入实例元数据（先写临时文件再替换）"""
        path = self._metadata_path(metadata.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False))
        os.replace(tmp, path)
        logger.debug(f"[实例] 已写入 {metadata.id} 元数据 (版本 {metadata.version})")

    def stage_removal(self, modpack_id: str) -> bool:
        """
        暂存元数据以便删除

        Returns:
            是否存在需要暂存的元数据
        """
        path = self._metadata_path(modpack_id)
        if not path.exists():
            return False
        os.replace(path, self._staged_path(modpack_id))
        return True

    def restore(self, modpack_id: str):
        """撤销暂存，恢复原有元数据"""
        staged = self._staged_path(modpack_id)
        if staged.exists():
            os.replace(staged, self._metadata_path(modpack_id))

    def discard(self, modpack_id: str):
        """确认删除暂存的元数据"""
        staged = self._staged_path(modpack_id)
        if staged.exists():
            staged.unlink()

    def remove(self, modpack_id: str):
        """删除实例元数据"""
        for path in (self._metadata_path(modpack_id), self._staged_path(modpack_id)):
            if path.exists():
                path.unlink()
