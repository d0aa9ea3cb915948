"""
归档工作进程

在独立进程中执行同步的归档扫描，避免阻塞事件循环；
超时后强制终止进程。
"""

import asyncio
import multiprocessing
from typing import Any, Callable

from loguru import logger

from packkeeper.exceptions import (
    InvalidArchive,
    PackKeeperError,
    ValidationError,
    ValidationTimeout,
)


def _child(conn, func: Callable, args: tuple):
    try:
        conn.send(("ok", func(*args)))
    except PackKeeperError as e:
        conn.send(("error", e.kind, e.message))
    except Exception as e:
        conn.send(("error", type(e).__name__, str(e)))
    finally:
        conn.close()


class ArchiveWorker:
    """可终止的归档工作进程"""

    poll_interval = 0.05

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self._ctx = multiprocessing.get_context()

    async def run(self, func: Callable, *args) -> Any:
        """
        在工作进程中执行 func(*args)

        func 与参数必须可以被 pickle（模块级函数）。

        Raises:
            ValidationTimeout: 超过 timeout 秒未返回
            InvalidArchive: 归档无效
            ValidationError: 工作进程中的其他错误
        """
        loop = asyncio.get_running_loop()
        parent_conn, child_conn = self._ctx.Pipe(duplex=False)
        process = self._ctx.Process(
            target=_child, args=(child_conn, func, args), daemon=True
        )
        process.start()
        child_conn.close()
        logger.debug(f"[工作进程] 已启动 pid={process.pid} 任务={getattr(func, '__name__', func)}")

        deadline = loop.time() + self.timeout
        message = None
        try:
            while not parent_conn.poll():
                if not process.is_alive() and not parent_conn.poll():
                    raise ValidationError(
                        f"工作进程意外退出 (exitcode={process.exitcode})"
                    )
                if loop.time() >= deadline:
                    raise ValidationTimeout(
                        f"归档处理超过 {self.timeout:g} 秒",
                        context={"timeout": self.timeout},
                    )
                await asyncio.sleep(self.poll_interval)
            try:
                message = parent_conn.recv()
            except EOFError as e:
                raise ValidationError(
                    f"工作进程意外退出 (exitcode={process.exitcode})"
                ) from e
        finally:
            parent_conn.close()
            await self._reap(process, finished=message is not None)

        if message[0] == "ok":
            return message[1]
        _, kind, text = message
        if kind == "InvalidArchive":
            raise InvalidArchive(text)
        raise ValidationError(f"{kind}: {text}")

    @staticmethod
    async def _reap(process, finished: bool):
        """回收工作进程；已返回结果的进程先等待其自行退出，仍在运行才终止"""
        loop = asyncio.get_running_loop()
        if finished:
            await loop.run_in_executor(None, process.join, 1.0)
        if process.is_alive():
            logger.warning(f"[工作进程] 终止 pid={process.pid}")
            process.terminate()
        await loop.run_in_executor(None, process.join, 5)
