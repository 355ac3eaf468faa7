# SPDX-License-Identifier: MIT

import asyncio
import unittest

from tabflip.error_handler import HostBusyError, HostError, classify_host_error
from tabflip.retrier import CorrectiveActionRetrier

from tests.fakes import FakeHost


class ClassifyHostErrorTest(unittest.TestCase):
    def test_busy_error_type_is_transient(self):
        self.assertTrue(classify_host_error(HostBusyError("busy")).retryable)

    def test_busy_message_is_transient_without_busy_type(self):
        classified = classify_host_error(HostError("Tabs cannot be edited right now (user may be dragging a tab)."))
        self.assertEqual(classified.error_type, "transient_busy")
        self.assertTrue(classified.retryable)

    def test_busy_status_code_is_transient(self):
        self.assertEqual(classify_host_error(HostError("locked", status_code=423)).error_type, "transient_busy")

    def test_not_found_is_missing_reference(self):
        self.assertEqual(
            classify_host_error(HostError("gone", status_code=404)).error_type, "missing_reference"
        )

    def test_other_failures(self):
        self.assertEqual(classify_host_error(HostError("boom", status_code=500)).error_type, "host_error")
        self.assertEqual(classify_host_error(RuntimeError("boom")).error_type, "unknown")
        self.assertFalse(classify_host_error(RuntimeError("boom")).retryable)


class CorrectiveActionRetrierTest(unittest.TestCase):
    def run_async(self, coro):
        return asyncio.run(coro)

    def setUp(self):
        self.host = FakeHost()
        self.host.add_window(1, [10, 11], active=10)

    def test_success_on_first_attempt(self):
        async def scenario():
            retrier = CorrectiveActionRetrier(self.host, retry_delay=0)
            return await retrier.activate(11)

        outcome = self.run_async(scenario())
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(self.host.activated, [11])

    def test_busy_failure_is_retried_until_success(self):
        self.host.fail_next("activate", times=2)

        async def scenario():
            retrier = CorrectiveActionRetrier(self.host, retry_delay=0)
            return await retrier.activate(11)

        outcome = self.run_async(scenario())
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(self.host.activated, [11])

    def test_busy_failure_gives_up_after_three_retries(self):
        self.host.fail_next("activate", times=10)

        async def scenario():
            retrier = CorrectiveActionRetrier(self.host, retry_delay=0)
            return await retrier.activate(11)

        outcome = self.run_async(scenario())
        self.assertFalse(outcome.success)
        # One initial attempt plus three retries
        self.assertEqual(self.host.attempts["activate"], 4)
        self.assertEqual(outcome.error.error_type, "transient_busy")
        self.assertEqual(self.host.activated, [])

    def test_other_failure_is_not_retried(self):
        self.host.fail_next("move", times=1, busy=False)

        async def scenario():
            retrier = CorrectiveActionRetrier(self.host, retry_delay=0)
            return await retrier.move(11)

        outcome = self.run_async(scenario())
        self.assertFalse(outcome.success)
        self.assertEqual(self.host.attempts["move"], 1)
        self.assertEqual(outcome.error.error_type, "host_error")

    def test_drain_waits_for_submitted_actions(self):
        async def scenario():
            retrier = CorrectiveActionRetrier(self.host, retry_delay=0)
            retrier.activate(11)
            retrier.move(10)
            self.assertEqual(retrier.pending_count, 2)
            await retrier.drain()
            return retrier.pending_count

        self.assertEqual(self.run_async(scenario()), 0)
        self.assertEqual(self.host.activated, [11])
        self.assertEqual(self.host.moved, [(10, -1)])

    def test_stop_cancels_pending_retries(self):
        self.host.fail_next("activate", times=10)

        async def scenario():
            retrier = CorrectiveActionRetrier(self.host, retry_delay=5)
            retrier.activate(11)
            await asyncio.sleep(0)
            await retrier.stop()
            return retrier.pending_count

        self.assertEqual(self.run_async(scenario()), 0)
        self.assertEqual(self.host.activated, [])


if __name__ == "__main__":
    unittest.main()
