"""
主协调器

整合生命周期控制器、整合包校验、更新检查与更新安装，
为界面层提供统一入口。
"""

from pathlib import Path
from typing import Callable, Dict, Optional, Union

from loguru import logger

from packkeeper.api import CurseForgeClient, GitHubReleaseClient
from packkeeper.api.base import (
    Catalog,
    GameRuntime,
    KeyValueStore,
    MetadataService,
    NativeUpdater,
    ProgressCallback,
    ReleaseRegistry,
)
from packkeeper.exceptions import LifecycleError, UpdateInstallFailed
from packkeeper.host import HostEnvironment, NullNativeUpdater
from packkeeper.lifecycle import (
    EventBus,
    LifecycleEvent,
    ModpackLifecycleController,
    OperationRegistry,
    StaticCatalog,
)
from packkeeper.lifecycle.controller import ProgressListener
from packkeeper.models import (
    InstallOutcome,
    LauncherConfig,
    ModpackRuntimeState,
    OperationResult,
    UpdateInfo,
    ValidationResult,
)
from packkeeper.progress import ProgressTracker
from packkeeper.services import (
    BackgroundUpdateChecker,
    ManifestValidator,
    UpdateChannelResolver,
    UpdateInstaller,
)
from packkeeper.storage import InstanceStore, JsonFileStore, LauncherSettings


class LauncherOrchestrator:
    """PackKeeper 主协调器"""

    def __init__(
        self,
        config: LauncherConfig,
        runtime: Optional[GameRuntime] = None,
        catalog: Optional[Catalog] = None,
        metadata: Optional[MetadataService] = None,
        native: Optional[NativeUpdater] = None,
        registry: Optional[ReleaseRegistry] = None,
        cache: Optional[KeyValueStore] = None,
        settings_store: Optional[KeyValueStore] = None,
        instances: Optional[InstanceStore] = None,
        host: Optional[HostEnvironment] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.runtime = runtime
        self.catalog = catalog or StaticCatalog()
        self.metadata = metadata or CurseForgeClient(
            base_url=config.api.metadata_url,
            api_key=config.api.metadata_api_key,
            timeout=config.api.request_timeout,
        )
        self.native = native or NullNativeUpdater()
        self.registry = registry or GitHubReleaseClient(
            config.api.releases_url, timeout=config.api.request_timeout
        )
        self.cache = cache or JsonFileStore(config.paths.cache_file)
        self.settings = LauncherSettings(
            settings_store or JsonFileStore(config.paths.settings_file)
        )
        self.instances = instances or InstanceStore(config.paths.instances_dir)

        self.bus = EventBus()
        self.operations = OperationRegistry()
        self.validator = ManifestValidator(
            self.metadata,
            timeout=config.validation.timeout,
            batch_size=config.validation.batch_size,
        )
        resolver_kwargs = {"clock": clock} if clock is not None else {}
        self.resolver = UpdateChannelResolver(
            self.settings,
            self.cache,
            self.native,
            self.registry,
            host=host,
            ttl=config.updates.check_interval,
            **resolver_kwargs,
        )
        self.checker = BackgroundUpdateChecker(self.resolver)
        self.installer = UpdateInstaller(self.native, tracker=self._new_tracker())

        self._controllers: Dict[str, ModpackLifecycleController] = {}
        self._last_update: Optional[UpdateInfo] = None

    def _new_tracker(self) -> ProgressTracker:
        return ProgressTracker(
            window=self.config.progress.eta_window,
            smoothing=self.config.progress.smoothing,
        )

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def controller(self, modpack_id: str) -> ModpackLifecycleController:
        """获取（必要时创建）整合包的控制器"""
        if self.runtime is None:
            raise LifecycleError("未配置游戏运行时，无法管理整合包实例")
        controller = self._controllers.get(modpack_id)
        if controller is None:
            controller = ModpackLifecycleController(
                modpack_id,
                catalog=self.catalog,
                runtime=self.runtime,
                instances=self.instances,
                registry=self.operations,
                bus=self.bus,
                validator=self.validator,
                tracker_factory=self._new_tracker,
                channel_size=self.config.progress.channel_size,
            )
            self._controllers[modpack_id] = controller
        return controller

    def subscribe(self, listener: Callable[[LifecycleEvent], object]) -> Callable[[], None]:
        return self.bus.subscribe(listener)

    async def get_modpack_status(self, modpack_id: str) -> ModpackRuntimeState:
        return await self.controller(modpack_id).get_status()

    async def install(
        self, modpack_id: str, on_progress: Optional[ProgressListener] = None
    ) -> OperationResult:
        return await self.controller(modpack_id).install(on_progress)

    async def update(
        self, modpack_id: str, on_progress: Optional[ProgressListener] = None
    ) -> OperationResult:
        return await self.controller(modpack_id).update(on_progress)

    async def repair(
        self, modpack_id: str, on_progress: Optional[ProgressListener] = None
    ) -> OperationResult:
        return await self.controller(modpack_id).repair(on_progress)

    async def launch(self, modpack_id: str, settings: Optional[dict] = None) -> OperationResult:
        return await self.controller(modpack_id).launch(settings)

    async def remove_modpack(self, modpack_id: str) -> OperationResult:
        result = await self.controller(modpack_id).remove()
        self._controllers.pop(modpack_id, None)
        return result

    # ------------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------------

    async def validate_archive(self, archive: Union[str, Path]) -> ValidationResult:
        return await self.validator.validate(archive)

    # ------------------------------------------------------------------
    # 启动器更新
    # ------------------------------------------------------------------

    async def check_for_updates(self) -> UpdateInfo:
        info = await self.resolver.check_for_updates()
        self._last_update = info
        return info

    def get_cached_update_info(self) -> Optional[UpdateInfo]:
        return self.resolver.get_cached_update_info()

    async def install_update(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> InstallOutcome:
        """
        安装最近一次检查到的更新

        没有检查记录时先检查一次。
        """
        info = self._last_update
        if info is None or info.resolved is None:
            info = await self.check_for_updates()
        if not info.has_update or info.resolved is None:
            raise UpdateInstallFailed(
                "没有可安装的更新", context={"current": info.current_version}
            )
        outcome = await self.installer.install(info.resolved, on_progress)
        logger.info(f"[更新] {outcome.message}")
        return outcome

    # ------------------------------------------------------------------
    # 生命周期管理
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """启动后台更新检查（需在事件循环中调用）"""
        if not self.config.updates.auto_check:
            logger.info("[更新] 已在配置中关闭自动检查")
            return False
        return self.checker.start()

    async def close(self):
        """停止后台任务并关闭客户端"""
        self.checker.stop()
        for client in (self.metadata, self.registry):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
