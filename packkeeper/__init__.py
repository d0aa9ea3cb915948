"""
PackKeeper - Minecraft 整合包启动器核心

导入时安装默认的控制台日志输出，设置 PACKKEEPER_DEBUG=1 启用调试日志。
"""

__version__ = "0.3.0"

from packkeeper.logger import setup_logger


def init_logger():
    setup_logger()


init_logger()
