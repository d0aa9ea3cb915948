"""
进度通道

有界队列：运行时协作方可在任意线程发布 (done, total) 采样，
控制器在事件循环中按顺序消费。
"""

import asyncio
from typing import Optional, Tuple

from loguru import logger

_CLOSED = object()


class ProgressChannel:
    """有界进度通道"""

    def __init__(
        self,
        maxsize: int = 256,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._last_done: Optional[int] = None
        self._dropped = 0

    @property
    def dropped(self) -> int:
        """因队列已满被丢弃的采样数"""
        return self._dropped

    def publish(self, done: int, total: int):
        """
        发布采样（线程安全）

        可以直接作为 on_progress 回调交给运行时协作方。
        """
        try:
            self._loop.call_soon_threadsafe(self._put, int(done), int(total))
        except RuntimeError:
            # 事件循环已关闭
            logger.debug(f"进度通道已关闭，丢弃采样 {done}/{total}")

    __call__ = publish

    def close(self):
        """关闭通道，消费者读完剩余采样后结束迭代"""
        self._loop.call_soon_threadsafe(self._put_closed)

    def _put(self, done: int, total: int):
        if self._closed:
            return
        # 保证 done 非递减
        if self._last_done is not None and done < self._last_done:
            logger.debug(f"丢弃回退的进度采样: {done} < {self._last_done}")
            return
        self._last_done = done
        self._push((done, total))

    def _put_closed(self):
        if self._closed:
            return
        self._closed = True
        self._push(_CLOSED)

    def _push(self, item):
        if self._queue.full():
            self._queue.get_nowait()
            self._dropped += 1
        self._queue.put_nowait(item)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Tuple[int, int]:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item
