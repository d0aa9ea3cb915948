"""
整合包归档扫描

负责从整合包 zip 中读取 manifest.json 并收集 overrides 目录下的文件名。
这些函数在独立的工作进程中运行，只返回可序列化的普通数据。
"""

import json
import zipfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from packkeeper.exceptions import InvalidArchive

MANIFEST_NAME = "manifest.json"

# overrides 子目录 -> 允许的扩展名
OVERRIDE_AREAS = {
    "mods": (".jar",),
    "resourcepacks": (".zip",),
}


def inspect_archive(path: Union[str, Path]) -> Dict[str, Any]:
    """
    读取整合包归档

    Args:
        path: 归档文件路径

    Returns:
        {"manifest": manifest 原始字典, "override_files": 小写文件名列表}

    Raises:
        InvalidArchive: 无法打开归档，或 manifest 缺失/损坏
    """
    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        raise InvalidArchive(f"无法打开整合包归档: {e}", context={"path": str(path)}) from e

    with archive:
        names = archive.namelist()
        if MANIFEST_NAME not in names:
            raise InvalidArchive(
                "整合包中缺少 manifest.json", context={"path": str(path)}
            )
        try:
            data = json.loads(archive.read(MANIFEST_NAME).decode("utf-8-sig"))
        except (UnicodeDecodeError, ValueError, zipfile.BadZipFile) as e:
            raise InvalidArchive(
                f"manifest.json 无法解析: {e}", context={"path": str(path)}
            ) from e

        if not isinstance(data, dict):
            raise InvalidArchive("manifest.json 格式错误", context={"path": str(path)})

        overrides = data.get("overrides") or "overrides"
        if not isinstance(overrides, str):
            overrides = "overrides"

        return {
            "manifest": data,
            "override_files": scan_overrides(names, overrides),
        }


def scan_overrides(names: Iterable[str], overrides: str = "overrides") -> List[str]:
    """
    收集 overrides 中的模组与资源包文件名（不区分大小写）

    只统计 overrides/mods/*.jar 和 overrides/resourcepacks/*.zip 的直接子文件。
    """
    prefix = overrides.strip("/").lower() + "/"
    found = set()
    for name in names:
        lower = name.replace("\\", "/").lower()
        if not lower.startswith(prefix) or lower.endswith("/"):
            continue
        folder, _, filename = lower[len(prefix):].partition("/")
        if not filename or "/" in filename:
            continue
        extensions = OVERRIDE_AREAS.get(folder)
        if extensions and filename.endswith(extensions):
            found.add(filename)
    return sorted(found)
