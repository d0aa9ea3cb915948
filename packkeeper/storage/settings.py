"""
用户设置
"""

from packkeeper.api.base import KeyValueStore
from packkeeper.models import Channel

PRERELEASES_KEY = "enablePrereleases"
AUTO_UPDATE_KEY = "autoUpdate"


class LauncherSettings:
    """基于键值存储的用户设置读取器，每次访问都重新读取"""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @property
    def prereleases_enabled(self) -> bool:
        return bool(self.store.get(PRERELEASES_KEY, False))

    @prereleases_enabled.setter
    def prereleases_enabled(self, value: bool):
        self.store.set(PRERELEASES_KEY, bool(value))

    @property
    def auto_update(self) -> bool:
        return bool(self.store.get(AUTO_UPDATE_KEY, True))

    @auto_update.setter
    def auto_update(self, value: bool):
        self.store.set(AUTO_UPDATE_KEY, bool(value))

    def resolve_channel(self) -> Channel:
        return Channel.EXPERIMENTAL if self.prereleases_enabled else Channel.STABLE
