import unittest

from fakes import ManualClock
from translator.delay_calculator import DelayCalculator, RequestWindow
from translator.rate_profiles import RateProfile, RateProfileRegistry


class TestRequestWindow(unittest.TestCase):
    def test_prune_drops_requests_older_than_a_minute(self):
        clock = ManualClock()
        window = RequestWindow(clock)
        window.record()
        clock.advance(30)
        window.record()
        clock.advance(31)
        self.assertEqual(window.prune(), 1)
        self.assertEqual(window.oldest(), 30)


class TestDelayCalculator(unittest.TestCase):
    def setUp(self):
        self.registry = RateProfileRegistry(
            profiles={
                "unbounded": RateProfile(-1, -1, -1),
                "slow": RateProfile(2, 50, 250000),
                "medium": RateProfile(15, 1500, 1000000),
                "fast": RateProfile(100, 10000, -1),
            }
        )
        self.calculator = DelayCalculator(self.registry)
        self.clock = ManualClock()
        self.window = RequestWindow(self.clock)

    def test_unbounded_rpm_uses_default_delay(self):
        self.assertEqual(self.calculator.next_delay("unbounded", self.window), 3000)

    def test_spacing_with_headroom(self):
        # 60000 / 15 = 4000ms，留20%余量
        self.assertEqual(self.calculator.next_delay("medium", self.window), 4800)

    def test_spacing_clamped_to_bounds(self):
        self.assertEqual(self.calculator.next_delay("fast", self.window), 1000)
        self.window.record()
        self.assertEqual(self.calculator.next_delay("slow", self.window), 30000)

    def test_full_window_waits_for_oldest_request(self):
        self.window.record()
        self.clock.advance(10)
        self.window.record()
        self.clock.advance(20)
        # 最早的请求已过去30秒
        self.assertEqual(self.calculator.next_delay("slow", self.window), 30000)

    def test_full_window_wait_has_floor(self):
        self.window.record()
        self.window.record()
        self.clock.advance(59.5)
        self.assertEqual(self.calculator.next_delay("slow", self.window), 1000)

    def test_window_frees_up_after_a_minute(self):
        self.window.record()
        self.window.record()
        self.clock.advance(61)
        self.assertEqual(self.calculator.next_delay("slow", self.window), 30000)
        self.assertEqual(len(self.window), 0)


if __name__ == "__main__":
    unittest.main()
