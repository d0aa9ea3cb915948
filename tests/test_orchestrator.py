import tempfile
import unittest
from pathlib import Path

from packkeeper.exceptions import LifecycleError, UpdateInstallFailed
from packkeeper.host import HostEnvironment
from packkeeper.lifecycle import EventType, StaticCatalog
from packkeeper.models import InstallAction, LauncherConfig, ModpackDescriptor, ModpackStatus, NativeArtifact
from packkeeper.orchestrator import LauncherOrchestrator
from packkeeper.storage import MemoryStore
from tests.fakes import FakeClock, FakeMetadata, FakeNative, FakeRegistry, FakeRuntime, release

PACK = ModpackDescriptor(
    "pack", "1.0.0", "1.20.1", "fabric", "0.15.11", archive_url="https://cdn.invalid/pack.zip"
)


class TestLauncherOrchestrator(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config = LauncherConfig.from_dict(
            {"paths": {"data_dir": self._tmp.name}, "updates": {"auto_check": False}}
        )
        self.runtime = FakeRuntime()
        self.native = FakeNative()
        self.registry = FakeRegistry()
        self.settings_store = MemoryStore()
        self.orchestrator = LauncherOrchestrator(
            self.config,
            runtime=self.runtime,
            catalog=StaticCatalog([PACK]),
            metadata=FakeMetadata(files={}),
            native=self.native,
            registry=self.registry,
            cache=MemoryStore(),
            settings_store=self.settings_store,
            host=HostEnvironment(current_version="0.3.0", platform="windows"),
            clock=FakeClock(),
        )

    async def asyncTearDown(self):
        await self.orchestrator.close()
        self._tmp.cleanup()

    async def test_modpack_lifecycle(self):
        events = []
        self.orchestrator.subscribe(events.append)

        await self.orchestrator.install("pack")
        self.assertEqual(
            (await self.orchestrator.get_modpack_status("pack")).status, ModpackStatus.INSTALLED
        )
        self.assertTrue((Path(self._tmp.name) / "instances" / "pack" / "instance.json").exists())

        await self.orchestrator.launch("pack")
        await self.orchestrator.remove_modpack("pack")
        self.assertEqual(events[-1].type, EventType.REMOVED)
        self.assertEqual(
            (await self.orchestrator.get_modpack_status("pack")).status,
            ModpackStatus.NOT_INSTALLED,
        )

    async def test_controller_is_reused(self):
        self.assertIs(self.orchestrator.controller("pack"), self.orchestrator.controller("pack"))

    async def test_no_runtime(self):
        orchestrator = LauncherOrchestrator(
            self.config, metadata=FakeMetadata(files={}), registry=FakeRegistry(), cache=MemoryStore(),
            settings_store=MemoryStore(),
        )
        with self.assertRaises(LifecycleError):
            await orchestrator.install("pack")

    async def test_install_native_update(self):
        self.native.artifact = NativeArtifact("0.4.0")
        outcome = await self.orchestrator.install_update()
        self.assertEqual(outcome.action, InstallAction.RELAUNCHING)
        self.assertEqual(self.native.installs, 1)

    async def test_experimental_update_opens_download_page(self):
        self.settings_store.set("enablePrereleases", True)
        self.registry.releases = [release("v0.4.0-beta.1", prerelease=True, assets=["PackKeeper.msi"])]
        info = await self.orchestrator.check_for_updates()
        self.assertTrue(info.has_update)
        self.assertEqual(self.orchestrator.get_cached_update_info(), info)

        outcome = await self.orchestrator.install_update()
        self.assertEqual(outcome.action, InstallAction.OPEN_DOWNLOAD_PAGE)
        self.assertEqual(outcome.url, "https://example.invalid/PackKeeper.msi")

    async def test_nothing_to_install(self):
        with self.assertRaises(UpdateInstallFailed):
            await self.orchestrator.install_update()

    async def test_start_respects_auto_check(self):
        self.assertFalse(self.orchestrator.start())
        self.assertFalse(self.orchestrator.checker.running)


if __name__ == "__main__":
    unittest.main()
