"""
生命周期操作与忙碌表

每个整合包 id 同一时间最多只有一个忙碌操作。
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional

from loguru import logger

from packkeeper.exceptions import AlreadyInProgress, BusyStateConflict
from packkeeper.models import ModpackStatus

S = ModpackStatus


class LifecycleAction(Enum):
    """生命周期操作"""

    INSTALL = "install"
    UPDATE = "update"
    LAUNCH = "launch"
    REPAIR = "repair"
    REMOVE = "remove"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def busy_status(self) -> Optional[ModpackStatus]:
        return _BUSY_STATUS.get(self)

    @property
    def allowed_from(self) -> FrozenSet[ModpackStatus]:
        return _ALLOWED_FROM[self]

    @property
    def requires_archive(self) -> bool:
        return self in (LifecycleAction.INSTALL, LifecycleAction.UPDATE, LifecycleAction.REPAIR)

    @property
    def writes_metadata(self) -> bool:
        return self.requires_archive


_LABELS = {
    LifecycleAction.INSTALL: "安装",
    LifecycleAction.UPDATE: "更新",
    LifecycleAction.LAUNCH: "启动",
    LifecycleAction.REPAIR: "修复",
    LifecycleAction.REMOVE: "删除",
}

_BUSY_STATUS = {
    LifecycleAction.INSTALL: S.INSTALLING,
    LifecycleAction.UPDATE: S.UPDATING,
    LifecycleAction.LAUNCH: S.LAUNCHING,
    LifecycleAction.REPAIR: S.REPAIRING,
}

_ALLOWED_FROM = {
    LifecycleAction.INSTALL: frozenset({S.NOT_INSTALLED, S.ERROR}),
    LifecycleAction.UPDATE: frozenset({S.INSTALLED, S.OUTDATED}),
    LifecycleAction.LAUNCH: frozenset({S.INSTALLED, S.OUTDATED}),
    LifecycleAction.REPAIR: frozenset({S.INSTALLED, S.OUTDATED, S.ERROR}),
    LifecycleAction.REMOVE: frozenset({S.INSTALLED, S.OUTDATED, S.ERROR}),
}


@dataclass(frozen=True)
class OperationHandle:
    """忙碌表中的一项"""

    modpack_id: str
    action: LifecycleAction
    started_at: float = field(default_factory=time.monotonic)


class OperationRegistry:
    """忙碌表：modpack id -> OperationHandle"""

    def __init__(self):
        self._busy: Dict[str, OperationHandle] = {}

    def current(self, modpack_id: str) -> Optional[OperationHandle]:
        return self._busy.get(modpack_id)

    def is_busy(self, modpack_id: str) -> bool:
        return modpack_id in self._busy

    def acquire(self, modpack_id: str, action: LifecycleAction) -> OperationHandle:
        """
        占用 id

        Raises:
            AlreadyInProgress: 同一操作已在进行
            BusyStateConflict: 另一个操作正占用该 id
        """
        handle = OperationHandle(modpack_id, action)
        existing = self._busy.setdefault(modpack_id, handle)
        if existing is handle:
            logger.debug(f"[忙碌表] {modpack_id} <- {action.value}")
            return handle
        if existing.action is action:
            raise AlreadyInProgress(
                f"整合包 {modpack_id} 正在{action.label}中，请稍候",
                context={"id": modpack_id, "action": action.value},
            )
        raise BusyStateConflict(
            f"整合包 {modpack_id} 正在{existing.action.label}，无法{action.label}",
            context={
                "id": modpack_id,
                "action": action.value,
                "current": existing.action.value,
            },
        )

    def release(self, handle: OperationHandle) -> bool:
        """释放 id，只有持有者本身才能释放"""
        if self._busy.get(handle.modpack_id) is handle:
            del self._busy[handle.modpack_id]
            logger.debug(f"[忙碌表] {handle.modpack_id} 已释放")
            return True
        return False

    @contextmanager
    def hold(self, modpack_id: str, action: LifecycleAction):
        handle = self.acquire(modpack_id, action)
        try:
            yield handle
        finally:
            self.release(handle)
