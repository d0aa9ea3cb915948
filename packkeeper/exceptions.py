"""
PackKeeper 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
错误代码与类名（kind）与语言无关，界面层据此选择翻译文本。
"""

from typing import Any, Dict, Optional

import aiohttp


class PackKeeperError(Exception):
    """PackKeeper 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    @property
    def kind(self) -> str:
        """稳定的错误类型标识"""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.kind,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class LifecycleError(PackKeeperError):
    """整合包生命周期相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ArchiveNotAvailable(LifecycleError):
    """目录条目没有可下载的整合包归档（仅连接型服务器）"""

    def _get_default_code(self) -> str:
        return "E101"


class AlreadyInProgress(LifecycleError):
    """同一操作已在进行中"""

    def _get_default_code(self) -> str:
        return "E102"


class BusyStateConflict(LifecycleError):
    """另一个忙碌操作正占用该整合包"""

    def _get_default_code(self) -> str:
        return "E103"


class RuntimeOperationFailed(LifecycleError):
    """游戏运行时协作方返回失败，消息原样保留"""

    def _get_default_code(self) -> str:
        return "E104"


class ModpackNotFound(LifecycleError):
    """目录中不存在该整合包"""

    def _get_default_code(self) -> str:
        return "E105"


class InvalidStateTransition(LifecycleError):
    """当前稳定状态不允许该操作"""

    def _get_default_code(self) -> str:
        return "E106"


class ValidationError(PackKeeperError):
    """整合包校验相关错误"""

    def _get_default_code(self) -> str:
        return "E200"


class InvalidArchive(ValidationError):
    """归档缺少 manifest 或 manifest 损坏"""

    def _get_default_code(self) -> str:
        return "E201"


class ValidationTimeout(ValidationError):
    """校验超过硬超时，工作进程已被终止"""

    def _get_default_code(self) -> str:
        return "E202"


class MetadataFetchPartialFailure(ValidationError):
    """
    某一批元数据请求失败

    仅在本地记录，不会中断整个校验；受影响的模组按“不可用”处理。
    """

    def _get_default_code(self) -> str:
        return "E203"


class UpdateError(PackKeeperError):
    """启动器自更新相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class UpdateCheckFailed(UpdateError):
    """检查更新失败（网络或解析错误）"""

    def _get_default_code(self) -> str:
        return "E301"


class UpdateInstallFailed(UpdateError):
    """下载或安装更新失败"""

    def _get_default_code(self) -> str:
        return "E302"


class ConfigError(PackKeeperError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E400"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E401"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E402"


class APIError(PackKeeperError):
    """远程 API 相关错误"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(message, code, context)
        self.response = response
        if response is not None:
            self.context["status_code"] = response.status
            self.context["url"] = str(response.url)

    def _get_default_code(self) -> str:
        return "E500"


class APINotFoundError(APIError):
    """API 资源不存在"""

    def _get_default_code(self) -> str:
        return "E404"


class APIRateLimitError(APIError):
    """API 速率限制或拒绝访问"""

    def _get_default_code(self) -> str:
        return "E429"


__all__ = [
    # 基础异常
    "PackKeeperError",
    # 生命周期异常
    "LifecycleError",
    "ArchiveNotAvailable",
    "AlreadyInProgress",
    "BusyStateConflict",
    "RuntimeOperationFailed",
    "ModpackNotFound",
    "InvalidStateTransition",
    # 校验异常
    "ValidationError",
    "InvalidArchive",
    "ValidationTimeout",
    "MetadataFetchPartialFailure",
    # 更新异常
    "UpdateError",
    "UpdateCheckFailed",
    "UpdateInstallFailed",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # API 异常
    "APIError",
    "APINotFoundError",
    "APIRateLimitError",
]
