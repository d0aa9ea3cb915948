"""
GitHub 发布仓库客户端

获取启动器的全部发布（包括预发布），按新到旧排列。
"""

from typing import List, Optional

import aiohttp
from loguru import logger

from packkeeper.api.base import ReleaseRegistry
from packkeeper.exceptions import APIError, APINotFoundError, APIRateLimitError
from packkeeper.models import Release


class GitHubReleaseClient(ReleaseRegistry):
    """GitHub releases API 客户端"""

    def __init__(
        self,
        releases_url: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.releases_url = releases_url
        self.timeout = timeout
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/vnd.github+json",
                    "Cache-Control": "no-cache",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def list_releases(self) -> List[Release]:
        """获取发布列表"""
        async with self.session.get(self.releases_url) as response:
            if response.status == 404:
                raise APINotFoundError("发布仓库不存在", response=response)
            if response.status == 403:
                raise APIRateLimitError("GitHub API 速率限制", response=response)
            if response.status != 200:
                raise APIError(
                    f"获取发布列表失败 (状态码: {response.status})",
                    response=response,
                )
            data = await response.json()

        releases = [Release.from_github(item) for item in data or [] if not item.get("draft")]
        logger.debug(f"[GitHub] 获取到 {len(releases)} 个发布")
        return releases

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
