"""
进度模块

包含进度跟踪器与有界进度通道。
"""

from packkeeper.progress.tracker import (
    ProgressSnapshot,
    ProgressTracker,
    format_eta,
    format_speed,
)
from packkeeper.progress.channel import ProgressChannel

__all__ = [
    "ProgressSnapshot",
    "ProgressTracker",
    "ProgressChannel",
    "format_eta",
    "format_speed",
]
