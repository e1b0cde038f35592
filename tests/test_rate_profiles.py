import unittest

from translator.rate_profiles import (
    CONSERVATIVE_PROFILE,
    DEFAULT_TOKEN_LIMIT,
    RateProfile,
    RateProfileRegistry,
    UNBOUNDED,
)


class TestRateProfileRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = RateProfileRegistry()

    def test_exact_match(self):
        self.assertEqual(
            self.registry.resolve("gemini-2.5-flash"), RateProfile(15, 1500, 1000000)
        )

    def test_models_prefix_is_ignored(self):
        self.assertEqual(
            self.registry.resolve("models/gemini-2.5-pro"),
            self.registry.resolve("gemini-2.5-pro"),
        )

    def test_substring_match(self):
        profile = self.registry.resolve("gemini-2.5-flash-preview-05-20")
        self.assertEqual(profile, RateProfile(15, 1500, 1000000))

    def test_tier_rule_match(self):
        profile = self.registry.resolve("acme-gemma-7b")
        self.assertEqual(profile, RateProfile(30, 2000, 500000))

    def test_unknown_model_gets_conservative_profile(self):
        profile = self.registry.resolve("totally-unknown-model")
        self.assertEqual(profile, CONSERVATIVE_PROFILE)
        self.assertEqual(profile, RateProfile(2, 20, 10000))

    def test_resolution_is_stable(self):
        first = self.registry.resolve("some-new-model")
        self.assertIs(self.registry.resolve("some-new-model"), first)

    def test_unbounded_profile(self):
        profile = self.registry.resolve("gemini-live-2.5-flash")
        self.assertEqual(profile.requests_per_day, UNBOUNDED)
        self.assertTrue(profile.rpm_bounded)

    def test_custom_profiles(self):
        registry = RateProfileRegistry(profiles={"local-llm": RateProfile(-1, -1, -1)})
        self.assertFalse(registry.resolve("local-llm").rpm_bounded)

    def test_profiles_are_read_only(self):
        with self.assertRaises(TypeError):
            self.registry.profiles["new-model"] = RateProfile(1, 1, 1)

    def test_token_limit(self):
        self.assertEqual(self.registry.token_limit("gemini-2.5-flash"), 1000000)
        self.assertEqual(self.registry.token_limit("models/gemini-1.5-pro"), 2000000)
        self.assertEqual(
            self.registry.token_limit("totally-unknown-model"), DEFAULT_TOKEN_LIMIT
        )


if __name__ == "__main__":
    unittest.main()
