"""
生命周期事件

观察者通过 EventBus 订阅整合包状态与进度变化。
"""

import asyncio
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional

from loguru import logger

from packkeeper.models import ModpackRuntimeState


class EventType(Enum):
    """事件类型"""

    STATE_CHANGED = auto()  # 进入忙碌状态或稳定状态
    PROGRESS = auto()  # 平滑后的进度更新
    FINISHED = auto()  # 操作成功结束（最后一个事件）
    FAILED = auto()  # 操作失败进入 error（最后一个事件）
    REMOVED = auto()  # 实例已删除


@dataclass(frozen=True)
class LifecycleEvent:
    """生命周期事件"""

    type: EventType
    modpack_id: str
    state: Optional[ModpackRuntimeState]
    action: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.type in (EventType.FINISHED, EventType.FAILED, EventType.REMOVED)


Listener = Callable[[LifecycleEvent], object]


class EventBus:
    """事件总线"""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        订阅事件

        Returns:
            取消订阅的函数
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, event: LifecycleEvent):
        """按订阅顺序通知所有观察者，观察者的异常只记录日志"""
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"[事件] 观察者处理 {event.type.name} 失败: {e}")
