"""
更新渠道服务

根据用户偏好选择稳定渠道（平台原生更新器）或实验渠道（发布仓库），
检查启动器更新并缓存结果；同时提供后台定时检查。
"""

import asyncio
import time
from typing import Callable, Optional

from loguru import logger

from packkeeper.api.base import KeyValueStore, NativeUpdater, ReleaseRegistry
from packkeeper.exceptions import UpdateCheckFailed
from packkeeper.host import HostEnvironment
from packkeeper.models import (
    Channel,
    RegistryRelease,
    Release,
    UpdateInfo,
)
from packkeeper.services.version_compare import VersionComparator
from packkeeper.storage.settings import LauncherSettings

CACHE_KEY = "lastUpdateCheck"
DEFAULT_TTL = 60 * 60

PLATFORM_ASSET_EXTENSIONS = {
    "windows": (".msi", ".exe"),
    "linux": (".deb", ".appimage"),
    "macos": (".dmg",),
}

NO_RELEASES_NOTE = "未找到任何发布版本，新安装的仓库属于正常情况。"


def select_asset_url(release: Release, platform: str) -> str:
    """选择与平台匹配的安装包地址，没有时返回发布页面"""
    for ext in PLATFORM_ASSET_EXTENSIONS.get(platform, ()):
        for asset in release.assets:
            if asset.name.lower().endswith(ext):
                return asset.download_url
    return release.html_url


class UpdateChannelResolver:
    """更新渠道解析器"""

    def __init__(
        self,
        settings: LauncherSettings,
        cache: KeyValueStore,
        native: NativeUpdater,
        registry: ReleaseRegistry,
        host: Optional[HostEnvironment] = None,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.cache = cache
        self.native = native
        self.registry = registry
        self.host = host or HostEnvironment()
        self.ttl = ttl
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def resolve_channel(self) -> Channel:
        return self.settings.resolve_channel()

    async def check_for_updates(self) -> UpdateInfo:
        """
        检查更新

        Returns:
            UpdateInfo

        Raises:
            UpdateCheckFailed: 网络或解析错误
        """
        channel = self.resolve_channel()
        logger.info(
            f"[更新] 检查更新 (渠道: {channel.value}, 当前版本: {self.host.current_version})"
        )
        try:
            if channel is Channel.EXPERIMENTAL:
                info = await self._check_experimental()
            else:
                info = await self._check_stable()
        except UpdateCheckFailed:
            raise
        except Exception as e:
            raise UpdateCheckFailed(
                f"检查更新失败: {e}", context={"channel": channel.value}
            ) from e

        self._write_cache(info)
        if info.has_update:
            logger.success(f"[更新] 发现新版本 {info.latest_version}")
        else:
            logger.info("[更新] 已是最新版本")
        return info

    async def _check_stable(self) -> UpdateInfo:
        artifact = await self.native.check_stable()
        if artifact is None:
            return self._no_update()
        return UpdateInfo(
            has_update=True,
            current_version=self.host.current_version,
            latest_version=artifact.version,
            platform=self.host.platform,
            release_notes=artifact.notes or None,
            is_prerelease=False,
            resolved=artifact,
        )

    async def _check_experimental(self) -> UpdateInfo:
        releases = await self.registry.list_releases()
        if not releases:
            logger.warning("[更新] 发布仓库中没有任何版本")
            return self._no_update(NO_RELEASES_NOTE)

        latest = releases[0]
        current = self.host.current_version
        has_update = VersionComparator.is_newer(latest.version, current)
        resolved = None
        download_url = None
        if has_update:
            resolved = await self._resolve_release(latest)
            if isinstance(resolved, RegistryRelease):
                download_url = resolved.download_url

        return UpdateInfo(
            has_update=has_update,
            current_version=current,
            latest_version=latest.version,
            platform=self.host.platform,
            release_notes=latest.notes or None,
            is_prerelease=latest.prerelease,
            download_url=download_url,
            resolved=resolved,
        )

    async def _resolve_release(self, release: Release):
        """
        判断实验版本是否恰好有可校验的原生安装包

        只有原生更新器返回同一版本时才使用 NativeArtifact。
        """
        try:
            artifact = await self.native.check_stable()
        except Exception as e:
            logger.warning(f"[更新] 原生更新器查询失败，使用发布页面: {e}")
            artifact = None
        if artifact is not None and VersionComparator.compare(artifact.version, release.version) == 0:
            return artifact
        return RegistryRelease(
            version=release.version,
            download_url=select_asset_url(release, self.host.platform),
            notes=release.notes,
            prerelease=release.prerelease,
        )

    def _no_update(self, note: Optional[str] = None) -> UpdateInfo:
        return UpdateInfo(
            has_update=False,
            current_version=self.host.current_version,
            latest_version=self.host.current_version,
            platform=self.host.platform,
            release_notes=note,
        )

    def _write_cache(self, info: UpdateInfo):
        self.cache.set(
            CACHE_KEY, {"timestamp": self.now(), "updateInfo": info.to_dict()}
        )

    def last_checked_at(self) -> Optional[float]:
        entry = self.cache.get(CACHE_KEY)
        if not isinstance(entry, dict):
            return None
        timestamp = entry.get("timestamp")
        return float(timestamp) if isinstance(timestamp, (int, float)) else None

    def get_cached_update_info(self) -> Optional[UpdateInfo]:
        """返回未过期的缓存结果，否则返回 None"""
        checked_at = self.last_checked_at()
        if checked_at is None or self.now() - checked_at >= self.ttl:
            return None
        try:
            return UpdateInfo.from_dict(self.cache.get(CACHE_KEY)["updateInfo"])
        except (KeyError, TypeError) as e:
            logger.debug(f"[更新] 缓存内容无效: {e}")
            return None

    def clear_cache(self):
        self.cache.remove(CACHE_KEY)


class BackgroundUpdateChecker:
    """后台定时检查更新，错误只记录日志"""

    def __init__(
        self,
        resolver: UpdateChannelResolver,
        interval: Optional[float] = None,
        on_update: Optional[Callable[[UpdateInfo], None]] = None,
    ):
        self.resolver = resolver
        self.interval = interval or resolver.ttl
        self.on_update = on_update
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        启动后台检查

        Returns:
            False 表示已在运行
        """
        if self.running:
            logger.debug("[更新] 后台检查已在运行")
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"[更新] 后台检查已启动 (间隔 {self.interval:g}s)")
        return True

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("[更新] 后台检查已停止")

    def should_check(self) -> bool:
        return self.resolver.get_cached_update_info() is None

    def time_until_next_check(self) -> float:
        checked_at = self.resolver.last_checked_at()
        if checked_at is None:
            return 0.0
        return max(0.0, checked_at + self.interval - self.resolver.now())

    async def _run(self):
        # 缓存仍有效时只等待剩余时间
        delay = 0.0 if self.should_check() else self.time_until_next_check()
        while True:
            if delay > 0:
                await asyncio.sleep(delay)
            await self.check_once()
            delay = self.interval

    async def check_once(self) -> Optional[UpdateInfo]:
        if not self.resolver.settings.auto_update:
            logger.debug("[更新] 自动更新已关闭，跳过后台检查")
            return None
        try:
            info = await self.resolver.check_for_updates()
        except Exception as e:
            logger.error(f"[更新] 后台检查失败: {e}")
            return None
        if info.has_update and self.on_update is not None:
            try:
                self.on_update(info)
            except Exception as e:
                logger.error(f"[更新] 更新回调执行失败: {e}")
        return info
