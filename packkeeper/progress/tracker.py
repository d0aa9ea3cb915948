"""
进度跟踪器

把离散的 (done, total) 采样累积为平滑百分比、速度与剩余时间。
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

ETA_MIN_PERCENT = 10.0
ETA_MAX_PERCENT = 95.0
ETA_MAX_SECONDS = 30 * 60


@dataclass(frozen=True)
class ProgressSnapshot:
    """单次采样后的进度快照"""

    done: int
    total: int
    percentage: float
    speed: float = 0.0
    eta_seconds: Optional[float] = None


class ProgressTracker:
    """进度跟踪器"""

    def __init__(
        self,
        window: int = 10,
        smoothing: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window
        self.smoothing = smoothing
        self._clock = clock
        self._rates: Deque[float] = deque(maxlen=window)
        self.reset()

    def reset(self):
        """重置状态，开始新的一次操作"""
        self._rates.clear()
        self._last_done: Optional[int] = None
        self._last_time: Optional[float] = None
        self._percentage = 0.0
        self._speed = 0.0

    @property
    def percentage(self) -> float:
        return self._percentage

    def update(self, done: int, total: int, now: Optional[float] = None) -> ProgressSnapshot:
        """
        记录一次采样

        Args:
            done: 已完成量（字节或文件数）
            total: 总量，<= 0 表示未知
            now: 采样时间，默认取注入的时钟

        Returns:
            ProgressSnapshot
        """
        now = self._clock() if now is None else now

        if total > 0:
            pct = min(max(done / total * 100.0, 0.0), 100.0)
        else:
            pct = 0.0
        # 百分比只增不减
        self._percentage = max(self._percentage, pct)

        if self._last_done is not None and self._last_time is not None:
            dt = now - self._last_time
            if dt > 0:
                self._rates.append(max(done - self._last_done, 0) / dt)
                self._speed = self._smoothed_rate()
        self._last_done = done
        self._last_time = now

        return ProgressSnapshot(
            done=done,
            total=total,
            percentage=self._percentage,
            speed=self._speed,
            eta_seconds=self._eta(done, total),
        )

    def _smoothed_rate(self) -> float:
        rate = None
        for sample in self._rates:
            rate = sample if rate is None else self.smoothing * sample + (1 - self.smoothing) * rate
        return rate or 0.0

    def _eta(self, done: int, total: int) -> Optional[float]:
        if not ETA_MIN_PERCENT < self._percentage < ETA_MAX_PERCENT:
            return None
        if self._speed <= 0 or total <= 0:
            return None
        eta = max(total - done, 0) / self._speed
        if eta > ETA_MAX_SECONDS:
            return None
        return eta


def format_eta(seconds: Optional[float]) -> str:
    """把秒数格式化为 "2m 30s" 样式"""
    if seconds is None or seconds < 0:
        return ""
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_speed(bytes_per_sec: float) -> str:
    """把速度格式化为 "2.5 MB/s" 样式"""
    if bytes_per_sec < 1024:
        return f"{bytes_per_sec:.0f} B/s"
    if bytes_per_sec < 1024 * 1024:
        return f"{bytes_per_sec / 1024:.1f} KB/s"
    return f"{bytes_per_sec / (1024 * 1024):.1f} MB/s"
