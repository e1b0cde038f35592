import unittest

from fakes import ManualClock, RecordingSleep, ScriptedProvider
from translator.delay_calculator import DelayCalculator, RequestWindow
from translator.exceptions import RateLimited, TransportFailure
from translator.rate_profiles import RateProfile, RateProfileRegistry
from translator.retry_controller import RetryController, max_retries_for


class TestMaxRetries(unittest.TestCase):
    def test_scales_with_rpm(self):
        self.assertEqual(max_retries_for(RateProfile(10, 100, 1000)), 2)
        self.assertEqual(max_retries_for(RateProfile(30, 100, 1000)), 3)
        self.assertEqual(max_retries_for(RateProfile(60, 100, 1000)), 5)
        self.assertEqual(max_retries_for(RateProfile(2, 50, 1000)), 2)

    def test_unbounded_rpm(self):
        self.assertEqual(max_retries_for(RateProfile(-1, -1, -1)), 5)


class TestRetryController(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        registry = RateProfileRegistry(
            profiles={
                "slow-model": RateProfile(10, 100, 250000),
                "fast-model": RateProfile(60, 1500, 1000000),
            }
        )
        self.clock = ManualClock()
        self.window = RequestWindow(self.clock)
        self.sleep = RecordingSleep()
        self.retry = RetryController(
            DelayCalculator(registry), self.window, sleep=self.sleep
        )

    async def test_first_attempt_succeeds(self):
        provider = ScriptedProvider(["ok"])
        outcome = await self.retry.call("prompt", provider, "fast-model")
        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.text, "ok")
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(self.sleep.calls, [])
        self.assertEqual(len(self.window), 1)

    async def test_rate_limit_then_success(self):
        provider = ScriptedProvider([RateLimited("429"), "ok"])
        outcome = await self.retry.call("prompt", provider, "fast-model")
        self.assertEqual(outcome.text, "ok")
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(self.sleep.calls, [1.2])

    async def test_rate_limit_waits_escalate(self):
        provider = ScriptedProvider(
            [RateLimited("429"), RateLimited("429"), "ok"]
        )
        outcome = await self.retry.call("prompt", provider, "fast-model")
        self.assertEqual(outcome.text, "ok")
        self.assertEqual(outcome.attempts, 3)
        # 1200ms 间隔，第二次等待翻倍
        self.assertEqual(self.sleep.calls, [1.2, 2.4])
        # 每次尝试前都记录请求
        self.assertEqual(len(self.window), 3)

    async def test_transport_failure_uses_plain_delay(self):
        provider = ScriptedProvider(
            [TransportFailure("boom"), TransportFailure("boom"), "ok"]
        )
        outcome = await self.retry.call("prompt", provider, "fast-model")
        self.assertEqual(outcome.text, "ok")
        self.assertEqual(self.sleep.calls, [1.2, 1.2])

    async def test_exhausted_retries(self):
        provider = ScriptedProvider([RateLimited("429"), RateLimited("429")])
        with self.assertLogs("translator.retry_controller", level="ERROR"):
            outcome = await self.retry.call("prompt", provider, "slow-model")
        self.assertFalse(outcome.succeeded)
        self.assertIsNone(outcome.text)
        self.assertEqual(outcome.attempts, 2)
        self.assertIsInstance(outcome.error, RateLimited)
        self.assertEqual(provider.call_count, 2)
        # 最后一次失败后不再等待
        self.assertEqual(self.sleep.calls, [7.2])

    async def test_explicit_retry_budget(self):
        provider = ScriptedProvider([TransportFailure("boom")])
        outcome = await self.retry.call("prompt", provider, "fast-model", max_retries=1)
        self.assertFalse(outcome.succeeded)
        self.assertEqual(provider.call_count, 1)
        self.assertEqual(self.sleep.calls, [])


if __name__ == "__main__":
    unittest.main()
