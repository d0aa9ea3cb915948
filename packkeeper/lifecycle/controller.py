"""
整合包生命周期控制器

每个整合包 id 一个控制器，负责安装、更新、启动、修复与删除的状态转换，
并把平滑后的进度与状态变化发布给观察者。
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

from loguru import logger

from packkeeper.api.base import Catalog, GameRuntime
from packkeeper.exceptions import (
    ArchiveNotAvailable,
    InvalidStateTransition,
    ModpackNotFound,
    PackKeeperError,
    RuntimeOperationFailed,
)
from packkeeper.lifecycle.events import EventBus, EventType, LifecycleEvent
from packkeeper.lifecycle.operations import LifecycleAction, OperationRegistry
from packkeeper.models import (
    InstanceMetadata,
    ModpackDescriptor,
    ModpackProgress,
    ModpackRuntimeState,
    ModpackStatus,
    OperationResult,
)
from packkeeper.progress import ProgressChannel, ProgressTracker
from packkeeper.services.manifest_validator import ManifestValidator
from packkeeper.storage.instances import InstanceStore

ProgressListener = Callable[[ModpackProgress], None]


def local_archive_path(url: Optional[str]) -> Optional[Path]:
    """归档地址是本地文件（file:// 或已存在的路径）时返回路径"""
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    if parsed.scheme in ("http", "https"):
        return None
    path = Path(url)
    return path if path.is_file() else None


class ModpackLifecycleController:
    """单个整合包的生命周期控制器"""

    def __init__(
        self,
        modpack_id: str,
        catalog: Catalog,
        runtime: GameRuntime,
        instances: InstanceStore,
        registry: OperationRegistry,
        bus: Optional[EventBus] = None,
        validator: Optional[ManifestValidator] = None,
        tracker_factory: Callable[[], ProgressTracker] = ProgressTracker,
        channel_size: int = 256,
    ):
        self.modpack_id = modpack_id
        self.catalog = catalog
        self.runtime = runtime
        self.instances = instances
        self.registry = registry
        self.bus = bus or EventBus()
        self.validator = validator
        self.tracker_factory = tracker_factory
        self.channel_size = channel_size
        self._state: Optional[ModpackRuntimeState] = None

    @property
    def state(self) -> ModpackRuntimeState:
        if self._state is None:
            self._state = ModpackRuntimeState(id=self.modpack_id)
        return self._state

    # ------------------------------------------------------------------
    # 状态查询
    # ------------------------------------------------------------------

    async def get_status(self) -> ModpackRuntimeState:
        """
        获取当前状态

        忙碌或 error 状态直接返回；否则根据实例元数据与目录版本推导
        not_installed / installed / outdated。
        """
        state = self.state
        if state.status.is_busy or state.status is ModpackStatus.ERROR:
            return state.snapshot()

        metadata = await self.instances.read(self.modpack_id)
        if metadata is None:
            state.status = ModpackStatus.NOT_INSTALLED
            return state.snapshot()

        descriptor = await self.catalog.get(self.modpack_id)
        if descriptor is None:
            state.status = ModpackStatus.ERROR
            state.error_kind = ModpackNotFound.__name__
            state.error_message = f"整合包 {self.modpack_id} 已不在目录中"
            return state.snapshot()

        state.status = self._derive(metadata, descriptor)
        return state.snapshot()

    @staticmethod
    def _derive(
        metadata: Optional[InstanceMetadata], descriptor: ModpackDescriptor
    ) -> ModpackStatus:
        if metadata is None:
            return ModpackStatus.NOT_INSTALLED
        if metadata.version != descriptor.version:
            return ModpackStatus.OUTDATED
        return ModpackStatus.INSTALLED

    # ------------------------------------------------------------------
    # 操作
    # ------------------------------------------------------------------

    async def install(self, on_progress: Optional[ProgressListener] = None) -> OperationResult:
        return await self._execute(LifecycleAction.INSTALL, on_progress)

    async def update(self, on_progress: Optional[ProgressListener] = None) -> OperationResult:
        return await self._execute(LifecycleAction.UPDATE, on_progress)

    async def repair(self, on_progress: Optional[ProgressListener] = None) -> OperationResult:
        return await self._execute(LifecycleAction.REPAIR, on_progress)

    async def launch(self, settings: Optional[dict] = None) -> OperationResult:
        return await self._execute(LifecycleAction.LAUNCH, None, settings)

    async def remove(self) -> OperationResult:
        """删除实例并销毁运行时状态"""
        action = LifecycleAction.REMOVE
        with self.registry.hold(self.modpack_id, action):
            await self._check_transition(action, await self.catalog.get(self.modpack_id))

            result = await self._call_runtime(self.runtime.delete_instance(self.modpack_id))
            self.instances.remove(self.modpack_id)
            self._state = None
            logger.info(f"[{self.modpack_id}] 实例已删除")
            await self.bus.publish(
                LifecycleEvent(EventType.REMOVED, self.modpack_id, None, action.value)
            )
            return result

    async def _execute(
        self,
        action: LifecycleAction,
        on_progress: Optional[ProgressListener],
        settings: Optional[dict] = None,
    ) -> OperationResult:
        handle = self.registry.acquire(self.modpack_id, action)
        try:
            descriptor = await self.catalog.get(self.modpack_id)
            if descriptor is None:
                raise ModpackNotFound(
                    f"目录中不存在整合包 {self.modpack_id}",
                    context={"id": self.modpack_id},
                )

            await self._check_transition(action, descriptor)

            if action.requires_archive and not descriptor.has_archive:
                raise ArchiveNotAvailable(
                    f"整合包 {descriptor.name or descriptor.id} 没有可下载的归档，"
                    f"该服务器仅支持直接连接: {descriptor.ip or '未知地址'}",
                    context={"id": descriptor.id, "ip": descriptor.ip},
                )

            await self._enter(action)
            try:
                result = await self._perform(action, descriptor, on_progress, settings)
            except asyncio.CancelledError:
                await self._fail(action, RuntimeOperationFailed(f"{action.label}已被取消"))
                raise
            except Exception as e:
                error = self._as_error(e)
                await self._fail(action, error)
                if error is e:
                    raise
                raise error from e

            await self._succeed(action, descriptor, result)
            return result
        finally:
            self.registry.release(handle)

    async def _check_transition(
        self, action: LifecycleAction, descriptor: Optional[ModpackDescriptor]
    ):
        """
        检查当前状态是否允许该操作

        error 状态下，除了允许重试安装和修复，也允许按实例的实际状态重试原操作。
        """
        metadata = await self.instances.read(self.modpack_id)
        if descriptor is None:
            derived = ModpackStatus.ERROR if metadata else ModpackStatus.NOT_INSTALLED
        else:
            derived = self._derive(metadata, descriptor)
        in_error = self.state.status is ModpackStatus.ERROR
        if derived in action.allowed_from:
            return
        if in_error and ModpackStatus.ERROR in action.allowed_from:
            return
        current = ModpackStatus.ERROR if in_error else derived
        raise InvalidStateTransition(
            f"整合包 {self.modpack_id} 当前状态为 {current.value}，无法{action.label}",
            context={"id": self.modpack_id, "action": action.value, "status": current.value},
        )

    async def _perform(
        self,
        action: LifecycleAction,
        descriptor: ModpackDescriptor,
        on_progress: Optional[ProgressListener],
        settings: Optional[dict],
    ) -> OperationResult:
        if action is LifecycleAction.LAUNCH:
            return await self._call_runtime(self.runtime.launch(descriptor, settings))

        await self._preflight(descriptor)
        if action is LifecycleAction.REPAIR:
            await self._delete_instance()
        return await self._transfer(descriptor, on_progress)

    async def _preflight(self, descriptor: ModpackDescriptor):
        """本地归档先校验 manifest，无效归档直接使操作失败"""
        path = local_archive_path(descriptor.archive_url)
        if path is None or self.validator is None:
            return
        result = await self.validator.validate(path)
        for mod in result.missing_mods:
            logger.warning(
                f"[{self.modpack_id}] 模组 {mod.file_name or mod.id} 没有下载地址且不在 overrides 中"
            )

    async def _delete_instance(self):
        """
        删除现有实例

        要么完整删除，要么保持原状：先暂存元数据，运行时删除失败时恢复。
        """
        staged = self.instances.stage_removal(self.modpack_id)
        try:
            await self._call_runtime(self.runtime.delete_instance(self.modpack_id))
        except Exception:
            if staged:
                self.instances.restore(self.modpack_id)
                logger.warning(f"[{self.modpack_id}] 删除实例失败，已恢复原有状态")
            raise
        self.instances.discard(self.modpack_id)
        logger.info(f"[{self.modpack_id}] 已删除旧实例，开始重新安装")

    async def _transfer(
        self, descriptor: ModpackDescriptor, on_progress: Optional[ProgressListener]
    ) -> OperationResult:
        channel = ProgressChannel(maxsize=self.channel_size)
        drain = asyncio.ensure_future(self._drain(channel, on_progress))
        try:
            return await self._call_runtime(
                self.runtime.install_archive(descriptor, channel.publish)
            )
        finally:
            channel.close()
            await drain

    async def _drain(self, channel: ProgressChannel, on_progress: Optional[ProgressListener]):
        tracker = self.tracker_factory()
        async for done, total in channel:
            snapshot = tracker.update(done, total)
            progress = ModpackProgress(
                downloaded_bytes=done,
                total_bytes=total,
                percentage=snapshot.percentage,
                current_speed=snapshot.speed,
                eta_seconds=snapshot.eta_seconds,
            )
            self.state.progress = progress
            logger.debug(f"[{self.modpack_id}] 进度 {snapshot.percentage:.1f}%")
            await self.bus.publish(
                LifecycleEvent(EventType.PROGRESS, self.modpack_id, self.state.snapshot())
            )
            if on_progress is not None:
                try:
                    on_progress(ModpackProgress(**vars(progress)))
                except Exception as e:
                    logger.error(f"[{self.modpack_id}] 进度回调执行失败: {e}")

    async def _call_runtime(self, call) -> OperationResult:
        result = await call
        if not result.success:
            raise RuntimeOperationFailed(
                result.message or "运行时操作失败",
                context={"id": self.modpack_id},
            )
        return result

    # ------------------------------------------------------------------
    # 状态转换
    # ------------------------------------------------------------------

    async def _enter(self, action: LifecycleAction):
        state = self.state
        state.status = action.busy_status
        state.progress = ModpackProgress()
        state.error_kind = None
        state.error_message = None
        logger.info(f"[{self.modpack_id}] -> {state.status.value}")
        await self.bus.publish(
            LifecycleEvent(EventType.STATE_CHANGED, self.modpack_id, state.snapshot(), action.value)
        )

    async def _succeed(
        self,
        action: LifecycleAction,
        descriptor: ModpackDescriptor,
        result: OperationResult,
    ):
        state = self.state
        metadata = None
        if action.writes_metadata:
            metadata = InstanceMetadata.for_descriptor(descriptor)
            await self.instances.write(metadata)
            state.progress.percentage = 100.0
            state.progress.eta_seconds = None
        else:
            metadata = await self.instances.read(self.modpack_id)
            state.progress = ModpackProgress()

        state.status = self._derive(metadata, descriptor)
        if result.failed_mods:
            logger.warning(
                f"[{self.modpack_id}] {len(result.failed_mods)} 个模组下载失败: "
                + ", ".join(m.file_name for m in result.failed_mods)
            )
        logger.success(f"[{self.modpack_id}] {action.label}完成 -> {state.status.value}")
        await self.bus.publish(
            LifecycleEvent(EventType.FINISHED, self.modpack_id, state.snapshot(), action.value)
        )

    async def _fail(self, action: LifecycleAction, error: PackKeeperError):
        state = self.state
        state.status = ModpackStatus.ERROR
        state.error_kind = error.kind
        state.error_message = error.message
        logger.error(f"[{self.modpack_id}] {action.label}失败 ({error.kind}): {error.message}")
        await self.bus.publish(
            LifecycleEvent(
                EventType.FAILED,
                self.modpack_id,
                state.snapshot(),
                action.value,
                error_kind=error.kind,
            )
        )

    @staticmethod
    def _as_error(exc: Exception) -> PackKeeperError:
        if isinstance(exc, PackKeeperError):
            return exc
        return RuntimeOperationFailed(str(exc) or type(exc).__name__)
