import asyncio
import unittest

from packkeeper.exceptions import AlreadyInProgress, UpdateInstallFailed
from packkeeper.models import (
    InstallAction,
    NativeArtifact,
    OperationResult,
    RegistryRelease,
    UpdateEvent,
    UpdateEventKind,
)
from packkeeper.services.update_installer import RESTART_MANUALLY_MESSAGE, UpdateInstaller
from tests.fakes import FakeNative


class TestUpdateInstaller(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.artifact = NativeArtifact("0.4.0", notes="fixes")
        self.native = FakeNative(self.artifact)
        self.opened = []
        self.installer = UpdateInstaller(
            self.native, opener=lambda url: self.opened.append(url) or True
        )

    async def test_progress_translation(self):
        samples = []
        outcome = await self.installer.install(self.artifact, lambda d, t: samples.append((d, t)))

        self.assertEqual(samples, [(0, 100), (40, 100), (100, 100), (100, 100)])
        self.assertEqual(outcome.action, InstallAction.RELAUNCHING)
        self.assertTrue(self.native.relaunched)
        self.assertEqual(self.installer.last_progress.percentage, 100.0)

    async def test_finished_without_content_length(self):
        self.native.events = [
            UpdateEvent(UpdateEventKind.STARTED),
            UpdateEvent(UpdateEventKind.PROGRESS, chunk_length=30),
            UpdateEvent(UpdateEventKind.FINISHED),
        ]
        samples = []
        await self.installer.install(self.artifact, lambda d, t: samples.append((d, t)))
        self.assertEqual(samples[-1], (30, 30))

    async def test_relaunch_failure_requires_restart(self):
        self.native.relaunch_error = OSError("cannot spawn")
        outcome = await self.installer.install(self.artifact)
        self.assertEqual(outcome.action, InstallAction.RESTART_REQUIRED)
        self.assertEqual(outcome.message, RESTART_MANUALLY_MESSAGE)

    async def test_registry_release_opens_download_page(self):
        update = RegistryRelease("2.1.0-beta.3", "https://example.invalid/app.deb", prerelease=True)
        outcome = await self.installer.install(update)

        self.assertEqual(outcome.action, InstallAction.OPEN_DOWNLOAD_PAGE)
        self.assertEqual(outcome.url, "https://example.invalid/app.deb")
        self.assertEqual(self.native.installs, 0)
        self.assertFalse(self.installer.pending)
        self.assertTrue(self.installer.open_download_page(outcome))
        self.assertEqual(self.opened, ["https://example.invalid/app.deb"])

    async def test_open_download_page_ignores_other_outcomes(self):
        outcome = await self.installer.install(self.artifact)
        self.assertFalse(self.installer.open_download_page(outcome))
        self.assertEqual(self.opened, [])

    async def test_single_flight(self):
        self.native.gate = asyncio.Event()
        first = asyncio.ensure_future(self.installer.install(self.artifact))
        await asyncio.sleep(0)
        self.assertTrue(self.installer.pending)

        with self.assertRaises(AlreadyInProgress):
            await self.installer.install(self.artifact)

        self.native.gate.set()
        outcome = await first
        self.assertEqual(outcome.action, InstallAction.RELAUNCHING)
        self.assertEqual(self.native.installs, 1)

        with self.assertRaises(AlreadyInProgress):
            await self.installer.install(self.artifact)

    async def test_failure_releases_flag(self):
        self.native.install_error = OSError("signature mismatch")
        with self.assertRaises(UpdateInstallFailed) as ctx:
            await self.installer.install(self.artifact)
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertFalse(self.installer.pending)

        self.native.install_error = None
        outcome = await self.installer.install(self.artifact)
        self.assertEqual(outcome.action, InstallAction.RELAUNCHING)

    async def test_unsuccessful_result(self):
        self.native.install_result = OperationResult(False, "disk full")
        with self.assertRaises(UpdateInstallFailed) as ctx:
            await self.installer.install(self.artifact)
        self.assertEqual(ctx.exception.message, "disk full")
        self.assertFalse(self.installer.pending)

    async def test_unknown_update_type(self):
        with self.assertRaises(UpdateInstallFailed):
            await self.installer.install("0.4.0")


if __name__ == "__main__":
    unittest.main()
