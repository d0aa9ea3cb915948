"""
CurseForge 元数据客户端

通过 CurseForge 兼容接口（官方 API 或代理）批量获取文件与模组元数据。
"""

from typing import List, Optional

import aiohttp
from loguru import logger

from packkeeper.api.base import MetadataService
from packkeeper.exceptions import APIError, APINotFoundError, APIRateLimitError
from packkeeper.models import FileRecord, ModRecord

CURSEFORGE_BASE_URL = "https://api.curse.tools/v1/cf"
MAX_IDS_PER_REQUEST = 50


class CurseForgeClient(MetadataService):
    """CurseForge API 客户端"""

    def __init__(
        self,
        base_url: str = CURSEFORGE_BASE_URL,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["x-api-key"] = self.api_key
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _post(self, endpoint: str, payload: dict) -> list:
        """发送 POST 请求并返回 data 字段"""
        url = f"{self.base_url}{endpoint}"
        async with self.session.post(url, json=payload) as response:
            if response.status == 200:
                body = await response.json()
                return (body or {}).get("data") or []
            elif response.status == 404:
                raise APINotFoundError(f"资源不存在: {endpoint}", response=response)
            elif response.status in (403, 429):
                raise APIRateLimitError(
                    f"请求被拒绝或受到速率限制 (状态码: {response.status})",
                    response=response,
                )
            else:
                raise APIError(
                    f"API 请求失败 (状态码: {response.status})",
                    response=response,
                )

    async def resolve_files(self, file_ids: List[int]) -> List[FileRecord]:
        """获取文件信息"""
        self._check_batch(file_ids)
        data = await self._post("/mods/files", {"fileIds": list(file_ids)})
        logger.debug(f"[CurseForge] 获取到 {len(data)}/{len(file_ids)} 个文件记录")
        return [FileRecord.from_curseforge(item) for item in data]

    async def resolve_mods(self, mod_ids: List[int]) -> List[ModRecord]:
        """获取模组信息"""
        self._check_batch(mod_ids)
        data = await self._post("/mods", {"modIds": list(mod_ids)})
        logger.debug(f"[CurseForge] 获取到 {len(data)}/{len(mod_ids)} 个模组记录")
        return [ModRecord.from_curseforge(item) for item in data]

    @staticmethod
    def _check_batch(ids: List[int]):
        if len(ids) > MAX_IDS_PER_REQUEST:
            raise ValueError(f"单次请求最多 {MAX_IDS_PER_REQUEST} 个 id，实际 {len(ids)}")

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
