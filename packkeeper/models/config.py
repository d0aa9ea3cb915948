"""
配置数据模型

定义启动器配置的数据类，以及从字典构建配置的逻辑。
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from packkeeper.exceptions import ConfigValidationError

MAX_BATCH_SIZE = 50


def default_data_dir() -> Path:
    """
    获取默认数据目录

    优先使用环境变量 PACKKEEPER_HOME，否则按平台选择。
    """
    env = os.environ.get("PACKKEEPER_HOME")
    if env:
        return Path(env).expanduser()
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA")
        if base:
            return Path(base) / "PackKeeper"
    return Path.home() / ".packkeeper"


@dataclass
class ApiConfig:
    """远程服务配置"""

    metadata_url: str = "https://api.curse.tools/v1/cf"
    metadata_api_key: Optional[str] = None
    releases_url: str = "https://api.github.com/repos/packkeeper/launcher/releases"
    request_timeout: float = 30.0


@dataclass
class PathsConfig:
    """本地路径配置"""

    data_dir: Path = field(default_factory=default_data_dir)

    @property
    def instances_dir(self) -> Path:
        return self.data_dir / "instances"

    @property
    def cache_file(self) -> Path:
        return self.data_dir / "cache.json"

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"


@dataclass
class UpdatesConfig:
    check_interval: float = 3600.0
    auto_check: bool = True


@dataclass
class ValidationConfig:
    timeout: float = 60.0
    batch_size: int = MAX_BATCH_SIZE


@dataclass
class ProgressConfig:
    channel_size: int = 256
    eta_window: int = 10
    smoothing: float = 0.3


@dataclass
class LauncherConfig:
    """启动器完整配置"""

    api: ApiConfig = field(default_factory=ApiConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    updates: UpdatesConfig = field(default_factory=UpdatesConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LauncherConfig":
        """
        从字典创建配置

        Args:
            data: 配置字典（来自 toml/json/yaml 文件）

        Returns:
            LauncherConfig 实例

        Raises:
            ConfigValidationError: 配置值不合法
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigValidationError("配置根节点必须是表/字典")

        api_data = _section(data, "api")
        paths_data = _section(data, "paths")
        updates_data = _section(data, "updates")
        validation_data = _section(data, "validation")
        progress_data = _section(data, "progress")

        try:
            api = ApiConfig(
                metadata_url=api_data.get("metadata_url", ApiConfig.metadata_url),
                metadata_api_key=api_data.get("metadata_api_key"),
                releases_url=api_data.get("releases_url", ApiConfig.releases_url),
                request_timeout=float(api_data.get("request_timeout", 30.0)),
            )
            paths = (
                PathsConfig(data_dir=Path(paths_data["data_dir"]).expanduser())
                if paths_data.get("data_dir")
                else PathsConfig()
            )
            updates = UpdatesConfig(
                check_interval=float(updates_data.get("check_interval", 3600.0)),
                auto_check=bool(updates_data.get("auto_check", True)),
            )
            validation = ValidationConfig(
                timeout=float(validation_data.get("timeout", 60.0)),
                batch_size=int(validation_data.get("batch_size", MAX_BATCH_SIZE)),
            )
            progress = ProgressConfig(
                channel_size=int(progress_data.get("channel_size", 256)),
                eta_window=int(progress_data.get("eta_window", 10)),
                smoothing=float(progress_data.get("smoothing", 0.3)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(f"配置值类型错误: {e}") from e

        config = cls(
            api=api,
            paths=paths,
            updates=updates,
            validation=validation,
            progress=progress,
        )
        config.validate()
        return config

    def validate(self):
        """验证配置取值范围"""
        if self.api.request_timeout <= 0:
            raise ConfigValidationError("api.request_timeout 必须大于 0")
        if self.updates.check_interval <= 0:
            raise ConfigValidationError("updates.check_interval 必须大于 0")
        if self.validation.timeout <= 0:
            raise ConfigValidationError("validation.timeout 必须大于 0")
        if not 1 <= self.validation.batch_size <= MAX_BATCH_SIZE:
            raise ConfigValidationError(
                f"validation.batch_size 必须在 1 到 {MAX_BATCH_SIZE} 之间",
                context={"batch_size": self.validation.batch_size},
            )
        if self.progress.channel_size < 1:
            raise ConfigValidationError("progress.channel_size 必须至少为 1")
        if self.progress.eta_window < 2:
            raise ConfigValidationError("progress.eta_window 必须至少为 2")
        if not 0 < self.progress.smoothing <= 1:
            raise ConfigValidationError("progress.smoothing 必须在 (0, 1] 之间")


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigValidationError(f"配置节 [{name}] 必须是表/字典")
    return section
