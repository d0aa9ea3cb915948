"""
整合包校验服务

解析整合包 manifest，分批从元数据服务获取模组文件信息，
并与归档内的 overrides 对照，找出真正缺失的模组。
"""

import asyncio
from pathlib import Path
from typing import Dict, List, Sequence, Union

from loguru import logger

from packkeeper.api.base import MetadataService
from packkeeper.exceptions import (
    InvalidArchive,
    MetadataFetchPartialFailure,
    ValidationTimeout,
)
from packkeeper.models import (
    FileRecord,
    Manifest,
    ModFileInfo,
    ModRecord,
    ValidationResult,
)
from packkeeper.services.archive_scan import inspect_archive
from packkeeper.services.worker import ArchiveWorker

DEFAULT_BATCH_SIZE = 50
DEFAULT_TIMEOUT = 60.0


def batched(items: Sequence, size: int) -> List[list]:
    """把序列按 size 切分"""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class ManifestValidator:
    """整合包校验器"""

    def __init__(
        self,
        metadata: MetadataService,
        timeout: float = DEFAULT_TIMEOUT,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.metadata = metadata
        self.timeout = timeout
        self.batch_size = min(batch_size, DEFAULT_BATCH_SIZE)

    async def validate(self, archive: Union[str, Path]) -> ValidationResult:
        """
        校验整合包

        Args:
            archive: 整合包 zip 路径

        Returns:
            ValidationResult

        Raises:
            InvalidArchive: manifest 缺失或损坏
            ValidationTimeout: 超过硬超时
        """
        logger.info(f"[校验] 开始校验整合包: {archive}")
        try:
            result = await asyncio.wait_for(self._validate(str(archive)), self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"[校验] 超时 ({self.timeout:g}s): {archive}")
            raise ValidationTimeout(
                f"整合包校验超过 {self.timeout:g} 秒",
                context={"archive": str(archive), "timeout": self.timeout},
            ) from e

        if result.missing_mods:
            logger.warning(
                f"[校验] {len(result.missing_mods)} 个模组缺失: "
                + ", ".join(m.file_name or str(m.id) for m in result.missing_mods)
            )
        else:
            logger.success(f"[校验] 整合包校验通过 ({len(result.manifest.files)} 个模组)")
        return result

    async def _validate(self, archive: str) -> ValidationResult:
        worker = ArchiveWorker(timeout=self.timeout)
        scanned = await worker.run(inspect_archive, archive)

        try:
            manifest = Manifest.from_dict(scanned["manifest"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidArchive(
                f"manifest.json 缺少必需字段: {e}", context={"archive": archive}
            ) from e

        override_files: List[str] = scanned["override_files"]
        logger.debug(
            f"[校验] manifest 声明 {len(manifest.files)} 个模组，overrides 中有 {len(override_files)} 个文件"
        )

        errors: List[MetadataFetchPartialFailure] = []
        records = await self._fetch_files(manifest.file_ids, errors)
        mods = await self._fetch_mods(
            sorted({r.mod_id for r in records.values()}), errors
        )

        files: List[ModFileInfo] = []
        for entry in manifest.files:
            record = records.get(entry.file_id)
            info = (
                ModFileInfo.from_record(record)
                if record is not None
                else ModFileInfo.unresolved(entry)
            )
            mod = mods.get(info.mod_id)
            if mod is not None:
                info.slug = mod.slug
                info.website_url = mod.website_url
            files.append(info)

        without_url = [f for f in files if not f.is_available]
        present = set(override_files)
        in_overrides = sorted(
            {
                f.file_name.lower()
                for f in without_url
                if f.file_name and f.file_name.lower() in present
            }
        )

        return ValidationResult(
            manifest=manifest,
            mods_without_url=without_url,
            mods_in_overrides=in_overrides,
            override_files=override_files,
            metadata_errors=errors,
            mod_records=mods,
        )

    async def _fetch_files(
        self, file_ids: List[int], errors: list
    ) -> Dict[int, FileRecord]:
        records: Dict[int, FileRecord] = {}
        for batch in batched(file_ids, self.batch_size):
            try:
                for record in await self.metadata.resolve_files(batch):
                    records[record.id] = record
            except Exception as e:
                errors.append(self._partial_failure("files", batch, e))
        return records

    async def _fetch_mods(self, mod_ids: List[int], errors: list) -> Dict[int, ModRecord]:
        records: Dict[int, ModRecord] = {}
        for batch in batched(mod_ids, self.batch_size):
            try:
                for record in await self.metadata.resolve_mods(batch):
                    records[record.id] = record
            except Exception as e:
                errors.append(self._partial_failure("mods", batch, e))
        return records

    @staticmethod
    def _partial_failure(
        endpoint: str, batch: List[int], cause: Exception
    ) -> MetadataFetchPartialFailure:
        logger.warning(f"[校验] 元数据批次请求失败 ({endpoint}, {len(batch)} 个 id): {cause}")
        error = MetadataFetchPartialFailure(
            f"获取 {endpoint} 元数据失败: {cause}",
            context={"endpoint": endpoint, "ids": batch},
        )
        error.__cause__ = cause
        return error
