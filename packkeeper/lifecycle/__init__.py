"""
整合包生命周期

包含生命周期控制器、忙碌表、事件总线与目录。
"""

from packkeeper.lifecycle.catalog import StaticCatalog
from packkeeper.lifecycle.controller import ModpackLifecycleController, local_archive_path
from packkeeper.lifecycle.events import EventBus, EventType, LifecycleEvent
from packkeeper.lifecycle.operations import (
    LifecycleAction,
    OperationHandle,
    OperationRegistry,
)

__all__ = [
    "StaticCatalog",
    "ModpackLifecycleController",
    "local_archive_path",
    "EventBus",
    "EventType",
    "LifecycleEvent",
    "LifecycleAction",
    "OperationHandle",
    "OperationRegistry",
]
