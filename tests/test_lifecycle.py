# SPDX-License-Identifier: MIT

import asyncio
import unittest

from tabflip.lifecycle import DormancyMonitor


class FakeClock:
    def __init__(self, start=1000.0):
        self.value = start

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds


class DormancyMonitorTest(unittest.TestCase):
    def run_async(self, coro):
        return asyncio.run(coro)

    def setUp(self):
        self.calls = 0
        self.clock = FakeClock()

    async def on_dormancy(self):
        self.calls += 1

    def make_monitor(self):
        return DormancyMonitor(self.on_dormancy, threshold_ms=5000, delay=0, clock=self.clock)

    def test_quick_reactivation_does_not_reconcile(self):
        async def scenario():
            monitor = self.make_monitor()
            monitor.start()
            self.clock.advance(1)
            scheduled = monitor.reactivate()
            await monitor.wait_pending()
            return scheduled

        self.assertFalse(self.run_async(scenario()))
        self.assertEqual(self.calls, 0)

    def test_reactivation_after_dormancy_reconciles_once(self):
        async def scenario():
            monitor = self.make_monitor()
            monitor.start()
            monitor.suspend()
            self.assertFalse(monitor.active)
            self.clock.advance(6)
            scheduled = monitor.reactivate()
            await monitor.wait_pending()
            return scheduled, monitor.active

        self.assertEqual(self.run_async(scenario()), (True, True))
        self.assertEqual(self.calls, 1)

    def test_stop_cancels_pending_reconciliation(self):
        async def scenario():
            monitor = DormancyMonitor(self.on_dormancy, threshold_ms=5000, delay=10, clock=self.clock)
            monitor.start()
            self.clock.advance(60)
            monitor.reactivate()
            await monitor.stop()
            return monitor.active

        self.assertFalse(self.run_async(scenario()))
        self.assertEqual(self.calls, 0)

    def test_failed_reconciliation_is_logged_not_raised(self):
        async def failing():
            raise RuntimeError("host unreachable")

        async def scenario():
            monitor = DormancyMonitor(failing, threshold_ms=0, delay=0, clock=self.clock)
            monitor.start()
            self.clock.advance(1)
            monitor.reactivate()
            await monitor.wait_pending()

        with self.assertLogs("tabflip", level="ERROR"):
            self.run_async(scenario())

    def test_status(self):
        monitor = self.make_monitor()
        monitor.start()
        status = monitor.status()
        self.assertTrue(status["active"])
        self.assertEqual(status["last_activation"], 1_000_000)


if __name__ == "__main__":
    unittest.main()
