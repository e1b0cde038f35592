import unittest

from translator.batch_planner import BatchPlanner, estimate_entry_tokens, estimate_tokens
from translator.entries import Entry


def make_entries(texts):
    return [Entry(key=f"key_{i}", source_text=text) for i, text in enumerate(texts)]


class TestTokenEstimate(unittest.TestCase):
    def test_four_chars_per_token_rounded_up(self):
        self.assertEqual(estimate_tokens(""), 0)
        self.assertEqual(estimate_tokens("abcd"), 1)
        self.assertEqual(estimate_tokens("abcde"), 2)

    def test_entry_structure_overhead(self):
        self.assertEqual(estimate_entry_tokens("abcd"), 21)


class TestBatchPlanner(unittest.TestCase):
    def setUp(self):
        self.planner = BatchPlanner()

    def test_entry_cap_per_batch(self):
        entries = make_entries([f"Text {i}" for i in range(25)])
        batches = self.planner.plan(entries, 1000000)
        self.assertEqual([len(b) for b in batches], [20, 5])

    def test_token_budget_closes_batch(self):
        # 限制1000 → 预算700；每条 400字符 = 100 + 20 token，开销100
        entries = make_entries(["x" * 400] * 12)
        batches = self.planner.plan(entries, 1000)
        self.assertEqual([len(b) for b in batches], [5, 5, 2])
        for batch in batches:
            self.assertLessEqual(batch.token_count, 700)

    def test_oversized_entry_gets_own_batch(self):
        entries = make_entries(["short", "y" * 4000, "short too"])
        batches = self.planner.plan(entries, 1000)
        self.assertEqual([len(b) for b in batches], [1, 1, 1])
        self.assertEqual(batches[1].texts, ["y" * 4000])

    def test_order_preserved_and_empty_sources_skipped(self):
        entries = make_entries(["a", "", "b", "c"])
        batches = self.planner.plan(entries, 1000000)
        self.assertEqual(len(batches), 1)
        self.assertEqual(batches[0].texts, ["a", "b", "c"])
        self.assertEqual(
            [e.key for e in batches[0].entries], ["key_0", "key_2", "key_3"]
        )

    def test_every_entry_lands_in_exactly_one_batch(self):
        entries = make_entries([f"Entry number {i}" * (i % 7 + 1) for i in range(53)])
        batches = self.planner.plan(entries, 2000)
        planned = [entry for batch in batches for entry in batch.entries]
        self.assertEqual(planned, entries)

    def test_no_entries(self):
        self.assertEqual(self.planner.plan([], 1000), [])

    def test_invalid_cap(self):
        with self.assertRaises(ValueError):
            BatchPlanner(max_entries=0)


if __name__ == "__main__":
    unittest.main()
