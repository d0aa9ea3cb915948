import asyncio
import threading
import unittest

from packkeeper.progress import ProgressChannel, ProgressTracker, format_eta, format_speed
from tests.fakes import FakeClock


class TestProgressTracker(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(0.0)
        self.tracker = ProgressTracker(clock=self.clock)

    def feed(self, samples, step=1.0):
        snapshots = []
        for done, total in samples:
            self.clock.advance(step)
            snapshots.append(self.tracker.update(done, total))
        return snapshots

    def test_percentage_is_clamped(self):
        self.assertEqual(self.tracker.update(150, 100).percentage, 100.0)
        self.tracker.reset()
        self.assertEqual(self.tracker.update(-5, 100).percentage, 0.0)
        self.tracker.reset()
        self.assertEqual(self.tracker.update(10, 0).percentage, 0.0)

    def test_percentage_is_monotonic(self):
        samples = [(0, 1000), (100, 1000), (100, 1200), (500, 1200), (900, 1000), (1000, 1000)]
        percentages = [s.percentage for s in self.feed(samples)]
        self.assertEqual(percentages, sorted(percentages))
        self.assertEqual(percentages[-1], 100.0)

    def test_eta_only_inside_band(self):
        snapshots = self.feed([(i * 50, 1000) for i in range(21)])
        for snap in snapshots:
            if snap.eta_seconds is not None:
                self.assertGreater(snap.percentage, 10.0)
                self.assertLess(snap.percentage, 95.0)
        middle = snapshots[10]
        self.assertEqual(middle.percentage, 50.0)
        self.assertAlmostEqual(middle.speed, 50.0)
        self.assertAlmostEqual(middle.eta_seconds, 10.0)
        self.assertIsNone(snapshots[1].eta_seconds)
        self.assertIsNone(snapshots[20].eta_seconds)

    def test_large_eta_is_suppressed(self):
        snapshots = self.feed([(0, 10_000_000), (1_100_000, 10_000_000)], step=1000.0)
        self.assertGreater(snapshots[-1].percentage, 10.0)
        self.assertAlmostEqual(snapshots[-1].speed, 1100.0)
        self.assertIsNone(snapshots[-1].eta_seconds)

    def test_zero_interval_samples_are_ignored(self):
        self.tracker.update(0, 100, now=5.0)
        snap = self.tracker.update(50, 100, now=5.0)
        self.assertEqual(snap.speed, 0.0)
        self.assertEqual(snap.percentage, 50.0)

    def test_smoothing_uses_window(self):
        tracker = ProgressTracker(window=3, smoothing=0.5, clock=self.clock)
        done = 0
        for rate in (10, 10, 10, 100):
            self.clock.advance(1.0)
            tracker.update(done, 10_000)
            done += rate
        self.clock.advance(1.0)
        snap = tracker.update(done, 10_000)
        # rates in window: 10, 10, 100 -> 10, 10, 55
        self.assertAlmostEqual(snap.speed, 55.0)


class TestFormatting(unittest.TestCase):
    def test_format_eta(self):
        self.assertEqual(format_eta(150), "2m 30s")
        self.assertEqual(format_eta(42), "42s")
        self.assertEqual(format_eta(3720), "1h 2m")
        self.assertEqual(format_eta(None), "")

    def test_format_speed(self):
        self.assertEqual(format_speed(2.5 * 1024 * 1024), "2.5 MB/s")
        self.assertEqual(format_speed(2048), "2.0 KB/s")
        self.assertEqual(format_speed(12), "12 B/s")


class TestProgressChannel(unittest.IsolatedAsyncioTestCase):
    async def collect(self, channel):
        return [item async for item in channel]

    async def test_samples_delivered_in_order(self):
        channel = ProgressChannel()
        for i in range(5):
            channel.publish(i * 10, 40)
        channel.close()
        self.assertEqual(await self.collect(channel), [(i * 10, 40) for i in range(5)])

    async def test_decreasing_samples_dropped(self):
        channel = ProgressChannel()
        for done in (10, 30, 20, 40):
            channel.publish(done, 100)
        channel.close()
        self.assertEqual([d for d, _ in await self.collect(channel)], [10, 30, 40])

    async def test_full_channel_drops_oldest(self):
        channel = ProgressChannel(maxsize=3)
        for done in range(6):
            channel.publish(done, 5)
        channel.close()
        items = await self.collect(channel)
        self.assertEqual(items[-1], (5, 5))
        self.assertLessEqual(len(items), 3)
        self.assertGreater(channel.dropped, 0)

    async def test_publish_from_other_thread(self):
        channel = ProgressChannel()

        def producer():
            for done in range(0, 101, 20):
                channel.publish(done, 100)

        thread = threading.Thread(target=producer)
        thread.start()
        await asyncio.get_running_loop().run_in_executor(None, thread.join)
        channel.close()
        self.assertEqual([d for d, _ in await self.collect(channel)], [0, 20, 40, 60, 80, 100])

    async def test_samples_after_close_are_ignored(self):
        channel = ProgressChannel()
        channel.publish(1, 2)
        channel.close()
        channel.publish(2, 2)
        self.assertEqual(await self.collect(channel), [(1, 2)])


if __name__ == "__main__":
    unittest.main()
