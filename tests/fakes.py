"""
测试用的协作方替身
"""

import asyncio
import io
import json
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

from packkeeper.api.base import GameRuntime, MetadataService, NativeUpdater, ReleaseRegistry
from packkeeper.models import (
    FileRecord,
    FileStatus,
    ModRecord,
    NativeArtifact,
    OperationResult,
    Release,
    ReleaseAsset,
    UpdateEvent,
    UpdateEventKind,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeRuntime(GameRuntime):
    def __init__(self):
        self.samples = []
        self.install_result = OperationResult(True)
        self.install_error: Optional[Exception] = None
        self.launch_result = OperationResult(True)
        self.delete_result = OperationResult(True)
        self.delete_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.threaded = False
        self.calls: List[str] = []
        self.on_delete = None

    async def install_archive(self, descriptor, on_progress):
        self.calls.append(f"install:{descriptor.id}")
        if self.threaded:
            await asyncio.get_running_loop().run_in_executor(
                None, lambda: [on_progress(d, t) for d, t in self.samples]
            )
        else:
            for done, total in self.samples:
                on_progress(done, total)
                await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.install_error is not None:
            raise self.install_error
        return self.install_result

    async def launch(self, descriptor, settings=None):
        self.calls.append(f"launch:{descriptor.id}")
        return self.launch_result

    async def delete_instance(self, modpack_id):
        self.calls.append(f"delete:{modpack_id}")
        if self.on_delete is not None:
            self.on_delete(modpack_id)
        if self.delete_error is not None:
            raise self.delete_error
        return self.delete_result


class FakeMetadata(MetadataService):
    """files: file_id -> FileRecord; 可以指定失败的批次序号"""

    def __init__(self, files: Dict[int, FileRecord], mods: Dict[int, ModRecord] = None):
        self.files = files
        self.mods = mods or {}
        self.file_batches: List[List[int]] = []
        self.mod_batches: List[List[int]] = []
        self.fail_file_batches = set()
        self.fail_mods = False

    async def resolve_files(self, file_ids):
        index = len(self.file_batches)
        self.file_batches.append(list(file_ids))
        if index in self.fail_file_batches:
            raise ConnectionError(f"batch {index} failed")
        return [self.files[i] for i in file_ids if i in self.files]

    async def resolve_mods(self, mod_ids):
        self.mod_batches.append(list(mod_ids))
        if self.fail_mods:
            raise ConnectionError("mods endpoint down")
        return [self.mods[i] for i in mod_ids if i in self.mods]


class FakeNative(NativeUpdater):
    def __init__(self, artifact: Optional[NativeArtifact] = None):
        self.artifact = artifact
        self.check_error: Optional[Exception] = None
        self.events = [
            UpdateEvent(UpdateEventKind.STARTED, content_length=100),
            UpdateEvent(UpdateEventKind.PROGRESS, chunk_length=40),
            UpdateEvent(UpdateEventKind.PROGRESS, chunk_length=60),
            UpdateEvent(UpdateEventKind.FINISHED),
        ]
        self.install_result = OperationResult(True)
        self.install_error: Optional[Exception] = None
        self.relaunch_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.installs = 0
        self.relaunched = False

    async def check_stable(self):
        if self.check_error is not None:
            raise self.check_error
        return self.artifact

    async def download_and_install(self, artifact, on_event):
        self.installs += 1
        for event in self.events:
            on_event(event)
        if self.gate is not None:
            await self.gate.wait()
        if self.install_error is not None:
            raise self.install_error
        return self.install_result

    async def relaunch(self):
        if self.relaunch_error is not None:
            raise self.relaunch_error
        self.relaunched = True


class FakeRegistry(ReleaseRegistry):
    def __init__(self, releases: List[Release] = None):
        self.releases = releases or []
        self.error: Optional[Exception] = None
        self.calls = 0

    async def list_releases(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.releases)


def release(tag: str, prerelease: bool = False, assets=()) -> Release:
    return Release(
        tag=tag,
        prerelease=prerelease,
        notes=f"notes for {tag}",
        html_url=f"https://example.invalid/releases/{tag}",
        assets=tuple(ReleaseAsset(name=a, download_url=f"https://example.invalid/{a}") for a in assets),
    )


def file_record(file_id: int, mod_id: int, name: str, url: Optional[str]) -> FileRecord:
    return FileRecord(
        id=file_id,
        mod_id=mod_id,
        file_name=name,
        download_url=url,
        file_status=FileStatus.APPROVED,
    )


def manifest_dict(file_ids, overrides: str = "overrides") -> dict:
    return {
        "minecraft": {
            "version": "1.20.1",
            "modLoaders": [{"id": "forge-47.4.2", "primary": True}],
        },
        "manifestType": "minecraftModpack",
        "manifestVersion": 1,
        "name": "Test Pack",
        "version": "1.0.0",
        "author": "tester",
        "files": [
            {"projectID": 1000 + fid, "fileID": fid, "required": True} for fid in file_ids
        ],
        "overrides": overrides,
    }


def write_archive(path: Path, manifest: Optional[dict], extra: Dict[str, bytes] = None,
                  raw_manifest: Optional[bytes] = None) -> Path:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if raw_manifest is not None:
            zf.writestr("manifest.json", raw_manifest)
        elif manifest is not None:
            zf.writestr("manifest.json", json.dumps(manifest))
        for name, content in (extra or {}).items():
            zf.writestr(name, content)
    path.write_bytes(buffer.getvalue())
    return path
