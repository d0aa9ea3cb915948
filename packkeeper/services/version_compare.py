"""
版本比较服务

实现语义化版本 + 预发布标识的比较，用于跨稳定/实验渠道判断是否有更新。
"""

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple

PRERELEASE_RANK = {"alpha": 0, "beta": 1, "rc": 2}
_PRERELEASE_RE = re.compile(r"^([a-zA-Z]+)[.\-]?(\d+)?")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


def _parse_component(part: str) -> int:
    # "3rc" 这类组件取前导数字，完全无法解析时按 0 处理
    match = _LEADING_INT_RE.match(part)
    return int(match.group(1)) if match else 0


def parse_version(version: str) -> Tuple[Tuple[int, int, int], Optional[str]]:
    """
    拆分版本号

    Returns:
        ((major, minor, patch), prerelease 或 None)
    """
    text = (version or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    text = text.split("+", 1)[0]
    core, sep, prerelease = text.partition("-")
    parts = [_parse_component(p) for p in core.split(".")[:3]]
    parts += [0] * (3 - len(parts))
    return (parts[0], parts[1], parts[2]), (prerelease if sep else None)


def _prerelease_key(tag: str) -> tuple:
    match = _PRERELEASE_RE.match(tag)
    if not match:
        return (-1, tag.lower(), 0, 0)
    name = match.group(1).lower()
    number = match.group(2)
    rank = PRERELEASE_RANK.get(name, -1)
    # 未知类型排在 alpha 之前，彼此按名称排序
    return (
        rank,
        "" if rank >= 0 else name,
        0 if number is None else 1,
        int(number) if number is not None else 0,
    )


def sort_key(version: str) -> tuple:
    """可直接用于 sorted() 的排序键"""
    core, prerelease = parse_version(version)
    if prerelease is None:
        return core + (1, ())
    return core + (0, _prerelease_key(prerelease))


class VersionComparator:
    """版本比较器"""

    @staticmethod
    def compare(a: str, b: str) -> int:
        """
        比较两个版本号

        Args:
            a: 版本 a
            b: 版本 b

        Returns:
            -1 (a < b)、0 (相等) 或 1 (a > b)
        """
        key_a, key_b = sort_key(a), sort_key(b)
        return (key_a > key_b) - (key_a < key_b)

    @classmethod
    def is_newer(cls, candidate: str, current: str) -> bool:
        return cls.compare(candidate, current) > 0

    @classmethod
    def latest(cls, versions: Iterable[str]) -> Optional[str]:
        ordered = cls.sort(versions)
        return ordered[-1] if ordered else None

    @classmethod
    def sort(cls, versions: Iterable[str]) -> List[str]:
        return sorted(versions, key=cmp_to_key(cls.compare))


compare = VersionComparator.compare
