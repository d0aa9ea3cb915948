"""
更新安装服务

通过平台原生更新器下载、校验并安装启动器更新；
没有可校验安装包的实验版本只会引导用户打开下载页面。
"""

import webbrowser
from typing import Callable, Optional

from loguru import logger

from packkeeper.api.base import NativeUpdater, ProgressCallback
from packkeeper.exceptions import AlreadyInProgress, UpdateError, UpdateInstallFailed
from packkeeper.models import (
    InstallAction,
    InstallOutcome,
    NativeArtifact,
    RegistryRelease,
    ResolvedUpdate,
    UpdateEvent,
    UpdateEventKind,
)
from packkeeper.progress import ProgressSnapshot, ProgressTracker, format_speed

RESTART_MANUALLY_MESSAGE = "更新已安装，但无法自动重启，请手动重启启动器。"


class UpdateInstaller:
    """更新安装器，每个进程生命周期内只允许一次安装"""

    def __init__(
        self,
        native: NativeUpdater,
        tracker: Optional[ProgressTracker] = None,
        opener: Callable[[str], bool] = webbrowser.open,
    ):
        self.native = native
        self.tracker = tracker or ProgressTracker()
        self._opener = opener
        self._pending = False
        self.last_progress: Optional[ProgressSnapshot] = None

    @property
    def pending(self) -> bool:
        return self._pending

    async def install(
        self,
        update: ResolvedUpdate,
        on_progress: Optional[ProgressCallback] = None,
    ) -> InstallOutcome:
        """
        安装更新

        Args:
            update: NativeArtifact 或 RegistryRelease
            on_progress: (已下载字节, 总字节) 回调

        Returns:
            InstallOutcome

        Raises:
            AlreadyInProgress: 已有安装在进行
            UpdateInstallFailed: 下载或安装失败
        """
        if isinstance(update, RegistryRelease):
            logger.warning(
                f"[更新] {update.version} 没有可校验的安装包，请从下载页面手动安装"
            )
            return InstallOutcome(
                action=InstallAction.OPEN_DOWNLOAD_PAGE,
                message=f"版本 {update.version} 需要从下载页面手动安装。",
                url=update.download_url,
            )
        if not isinstance(update, NativeArtifact):
            raise UpdateInstallFailed(f"未知的更新类型: {type(update).__name__}")

        if self._pending:
            raise AlreadyInProgress("已有更新正在安装")
        self._pending = True

        installed = False
        try:
            await self._download_and_install(update, on_progress)
            installed = True
        finally:
            if not installed:
                self._pending = False

        try:
            await self.native.relaunch()
        except Exception as e:
            logger.error(f"[更新] 自动重启失败: {e}")
            return InstallOutcome(
                action=InstallAction.RESTART_REQUIRED,
                message=RESTART_MANUALLY_MESSAGE,
            )
        return InstallOutcome(
            action=InstallAction.RELAUNCHING,
            message=f"已安装 {update.version}，正在重启启动器。",
        )

    async def _download_and_install(
        self, artifact: NativeArtifact, on_progress: Optional[ProgressCallback]
    ):
        self.tracker.reset()
        total = 0
        done = 0

        def report():
            self.last_progress = self.tracker.update(done, total)
            if on_progress is not None:
                on_progress(done, total)

        def on_event(event: UpdateEvent):
            nonlocal total, done
            if event.kind is UpdateEventKind.STARTED:
                total = event.content_length or 0
                done = 0
                logger.info(f"[更新] 开始下载 {artifact.version} ({total} 字节)")
            elif event.kind is UpdateEventKind.PROGRESS:
                done += event.chunk_length
                if total and done > total:
                    total = done
            elif event.kind is UpdateEventKind.FINISHED:
                total = total or done
                done = total
                logger.info("[更新] 下载完成，正在安装")
            report()
            logger.debug(
                f"[更新] {done}/{total} ({self.last_progress.percentage:.1f}%, "
                f"{format_speed(self.last_progress.speed)})"
            )

        try:
            result = await self.native.download_and_install(artifact, on_event)
        except UpdateError:
            raise
        except Exception as e:
            raise UpdateInstallFailed(
                f"安装更新失败: {e}", context={"version": artifact.version}
            ) from e
        if not result.success:
            raise UpdateInstallFailed(
                result.message or "安装更新失败", context={"version": artifact.version}
            )
        logger.success(f"[更新] {artifact.version} 安装完成")

    def open_download_page(self, outcome: InstallOutcome) -> bool:
        """在浏览器中打开下载页面"""
        if outcome.action is not InstallAction.OPEN_DOWNLOAD_PAGE or not outcome.url:
            return False
        logger.info(f"[更新] 打开下载页面: {outcome.url}")
        return bool(self._opener(outcome.url))
