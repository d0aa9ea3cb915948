import asyncio
import multiprocessing
import tempfile
import time
import unittest
from pathlib import Path

from loguru import logger

from packkeeper.exceptions import (
    InvalidArchive,
    MetadataFetchPartialFailure,
    ValidationTimeout,
)
from packkeeper.models import ModRecord
from packkeeper.services.archive_scan import scan_overrides
from packkeeper.services.manifest_validator import ManifestValidator, batched
from packkeeper.services.worker import ArchiveWorker
from tests.fakes import FakeMetadata, file_record, manifest_dict, write_archive


class SlowMetadata(FakeMetadata):
    async def resolve_files(self, file_ids):
        await asyncio.sleep(10)
        return []


class TestScanOverrides(unittest.TestCase):
    def test_only_known_areas_and_extensions(self):
        names = [
            "manifest.json",
            "overrides/mods/",
            "overrides/mods/JEI.JAR",
            "overrides/mods/notes.txt",
            "overrides/mods/nested/deep.jar",
            "overrides/resourcepacks/Faithful.zip",
            "overrides/resourcepacks/other.jar",
            "overrides/config/x.jar",
            "Overrides/Mods/Upper.jar",
        ]
        self.assertEqual(scan_overrides(names), ["faithful.zip", "jei.jar", "upper.jar"])

    def test_custom_overrides_folder(self):
        names = ["files/mods/a.jar", "overrides/mods/b.jar"]
        self.assertEqual(scan_overrides(names, "files"), ["a.jar"])

    def test_batched(self):
        self.assertEqual([len(b) for b in batched(list(range(120)), 50)], [50, 50, 20])
        self.assertEqual(batched([], 50), [])


class TestManifestValidator(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def archive(self, file_ids, extra=None, **kwargs):
        return write_archive(self.tmp / "pack.zip", manifest_dict(file_ids, **kwargs), extra)

    def standard_metadata(self):
        return FakeMetadata(
            files={
                1: file_record(1, 1001, "first.jar", "https://cdn.invalid/first.jar"),
                2: file_record(2, 1002, "SecondMod.jar", None),
                3: file_record(3, 1003, "third.jar", None),
            },
            mods={
                1001: ModRecord(1001, "First", "first-mod", "https://mods.invalid/first"),
                1003: ModRecord(1003, "Third", "third-mod", "https://mods.invalid/third"),
            },
        )

    async def test_classifies_missing_mods(self):
        archive = self.archive(
            [1, 2, 3, 4],
            extra={
                "overrides/mods/secondmod.JAR": b"jar",
                "overrides/resourcepacks/pack.zip": b"zip",
                "overrides/mods/readme.txt": b"txt",
            },
        )
        result = await ManifestValidator(self.standard_metadata()).validate(archive)

        self.assertEqual([m.id for m in result.mods_without_url], [2, 3, 4])
        self.assertEqual(result.mods_in_overrides, ["secondmod.jar"])
        self.assertEqual(result.override_files, ["pack.zip", "secondmod.jar"])
        self.assertTrue(set(result.mods_in_overrides) <= set(result.override_files))
        self.assertEqual([m.id for m in result.missing_mods], [3, 4])
        self.assertFalse(result.can_continue)
        third = result.missing_mods[0]
        self.assertEqual(third.slug, "third-mod")
        self.assertEqual(third.website_url, "https://mods.invalid/third")
        self.assertEqual(result.metadata_errors, [])

    async def test_can_continue_when_all_missing_are_overridden(self):
        archive = self.archive([1, 2], extra={"overrides/mods/SecondMod.jar": b"jar"})
        result = await ManifestValidator(self.standard_metadata()).validate(archive)
        self.assertEqual(result.missing_mods, [])
        self.assertTrue(result.can_continue)

    async def test_manifest_details(self):
        result = await ManifestValidator(self.standard_metadata()).validate(self.archive([1]))
        manifest = result.manifest
        self.assertEqual(manifest.name, "Test Pack")
        self.assertEqual(manifest.minecraft_version, "1.20.1")
        self.assertEqual(manifest.primary_loader, ("forge", "47.4.2"))
        self.assertEqual(manifest.file_ids, [1])

    async def test_validation_is_idempotent(self):
        archive = self.archive([1, 2, 3], extra={"overrides/mods/secondmod.jar": b"jar"})
        validator = ManifestValidator(self.standard_metadata())
        first = await validator.validate(archive)
        second = await validator.validate(archive)
        self.assertEqual(first.mods_without_url, second.mods_without_url)
        self.assertEqual(first.mods_in_overrides, second.mods_in_overrides)

    async def test_batches_of_fifty(self):
        ids = list(range(1, 121))
        metadata = FakeMetadata(
            files={i: file_record(i, 5000 + i % 7, f"mod{i}.jar", f"https://cdn.invalid/{i}") for i in ids}
        )
        result = await ManifestValidator(metadata).validate(self.archive(ids))
        self.assertEqual([len(b) for b in metadata.file_batches], [50, 50, 20])
        self.assertEqual(len(metadata.mod_batches), 1)
        self.assertEqual(sorted(metadata.mod_batches[0]), [5000 + i for i in range(7)])
        self.assertTrue(result.can_continue)

    async def test_failed_batch_degrades_to_unavailable(self):
        ids = list(range(1, 121))
        metadata = FakeMetadata(
            files={i: file_record(i, 7000 + i, f"mod{i}.jar", f"https://cdn.invalid/{i}") for i in ids}
        )
        metadata.fail_file_batches = {1}
        result = await ManifestValidator(metadata).validate(self.archive(ids))

        self.assertEqual(len(metadata.file_batches), 3)
        self.assertEqual([m.id for m in result.mods_without_url], list(range(51, 101)))
        self.assertEqual(len(result.metadata_errors), 1)
        self.assertIsInstance(result.metadata_errors[0], MetadataFetchPartialFailure)
        self.assertEqual(result.metadata_errors[0].context["ids"], list(range(51, 101)))

    async def test_mod_enrichment_failure_is_tolerated(self):
        metadata = self.standard_metadata()
        metadata.fail_mods = True
        result = await ManifestValidator(metadata).validate(self.archive([1, 3]))
        self.assertEqual([m.id for m in result.missing_mods], [3])
        self.assertIsNone(result.missing_mods[0].slug)
        self.assertEqual(len(result.metadata_errors), 1)

    async def test_missing_manifest(self):
        archive = write_archive(self.tmp / "empty.zip", None, {"overrides/mods/a.jar": b""})
        with self.assertRaises(InvalidArchive):
            await ManifestValidator(self.standard_metadata()).validate(archive)

    async def test_corrupt_manifest(self):
        archive = write_archive(self.tmp / "bad.zip", None, raw_manifest=b"{not json")
        with self.assertRaises(InvalidArchive):
            await ManifestValidator(self.standard_metadata()).validate(archive)

    async def test_manifest_without_files(self):
        archive = write_archive(self.tmp / "nofiles.zip", {"minecraft": {"version": "1.20.1"}})
        with self.assertRaises(InvalidArchive):
            await ManifestValidator(self.standard_metadata()).validate(archive)

    async def test_manifest_with_only_files(self):
        archive = write_archive(
            self.tmp / "minimal.zip",
            {"files": [{"projectID": 1001, "fileID": 1}]},
        )
        result = await ManifestValidator(self.standard_metadata()).validate(archive)
        self.assertEqual(result.manifest.file_ids, [1])
        self.assertEqual(result.manifest.minecraft_version, "")
        self.assertIsNone(result.manifest.primary_loader)
        self.assertTrue(result.can_continue)

    async def test_not_a_zip(self):
        path = self.tmp / "plain.zip"
        path.write_bytes(b"definitely not a zip")
        with self.assertRaises(InvalidArchive):
            await ManifestValidator(self.standard_metadata()).validate(path)

    async def test_hard_timeout(self):
        metadata = SlowMetadata(files={})
        validator = ManifestValidator(metadata, timeout=0.5)
        with self.assertRaises(ValidationTimeout):
            await validator.validate(self.archive([1]))


class TestArchiveWorker(unittest.IsolatedAsyncioTestCase):
    async def test_worker_is_terminated_on_timeout(self):
        worker = ArchiveWorker(timeout=0.3)
        started = time.monotonic()
        with self.assertRaises(ValidationTimeout):
            await worker.run(time.sleep, 5)
        self.assertLess(time.monotonic() - started, 4)

    async def test_worker_returns_result(self):
        self.assertEqual(await ArchiveWorker(timeout=10).run(max, 3, 7), 7)

    async def test_finished_worker_is_not_terminated(self):
        warnings = []
        sink_id = logger.add(warnings.append, level="WARNING")
        try:
            worker = ArchiveWorker(timeout=10)
            for _ in range(5):
                self.assertEqual(await worker.run(max, 3, 7), 7)
        finally:
            logger.remove(sink_id)
        self.assertEqual(warnings, [])
        self.assertEqual(multiprocessing.active_children(), [])


if __name__ == "__main__":
    unittest.main()
