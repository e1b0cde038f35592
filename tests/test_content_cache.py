import hashlib
import os
import tempfile
import unittest

from translator.content_cache import ContentCache, make_cache_key
from translator.entries import Entry


class TestCacheKey(unittest.TestCase):
    def test_key_is_uppercase_md5_of_utf8_text(self):
        text = "Merhaba dünya"
        expected = hashlib.md5(text.encode("utf-8")).hexdigest().upper()
        self.assertEqual(make_cache_key(text), expected)

    def test_identical_text_shares_key(self):
        self.assertEqual(make_cache_key("Start Game"), make_cache_key("Start Game"))
        self.assertNotEqual(make_cache_key("Start Game"), make_cache_key("start game"))


class TestContentCache(unittest.TestCase):
    def setUp(self):
        self.cache = ContentCache()

    def test_lookup_miss_returns_none(self):
        self.assertIsNone(self.cache.lookup("Hello"))

    def test_put_then_lookup(self):
        self.cache.put("Hello", "Merhaba")
        self.assertEqual(self.cache.lookup("Hello"), "Merhaba")
        self.assertIn("Hello", self.cache)
        self.assertEqual(len(self.cache), 1)

    def test_repeated_put_is_idempotent(self):
        self.cache.put("Hello", "Merhaba")
        self.cache.put("Hello", "Merhaba")
        self.assertEqual(self.cache.size(), 1)
        self.assertEqual(self.cache.lookup("Hello"), "Merhaba")

    def test_put_grows_size_by_at_most_one(self):
        self.cache.put("Hello", "Merhaba")
        self.cache.put("Hello", "Selam")
        self.assertEqual(self.cache.size(), 1)
        self.cache.put("Bye", "Hoşça kal")
        self.assertEqual(self.cache.size(), 2)

    def test_empty_translation_is_not_stored(self):
        self.cache.put("Hello", "")
        self.assertEqual(self.cache.size(), 0)

    def test_clear(self):
        self.cache.put("Hello", "Merhaba")
        self.cache.clear()
        self.assertEqual(self.cache.size(), 0)
        self.assertIsNone(self.cache.lookup("Hello"))

    def test_restore_rejects_non_string_mapping(self):
        with self.assertRaises(ValueError):
            self.cache.restore(b'["not", "a", "mapping"]')
        with self.assertRaises(ValueError):
            self.cache.restore(b'{"ABC": 1}')

    def test_persist_and_restore(self):
        self.cache.put("Hello", "Merhaba")
        self.cache.put("Bye", "Hoşça kal")

        other = ContentCache()
        other.restore(self.cache.persist())
        self.assertEqual(other.snapshot(), self.cache.snapshot())

    def test_restore_translations_fills_only_untranslated(self):
        self.cache.put("Hello", "Merhaba")
        entries = [
            Entry(key="a", source_text="Hello"),
            Entry(key="b", source_text="Hello", translation="Selam"),
            Entry(key="c", source_text="Unknown"),
        ]
        restored = self.cache.restore_translations(entries)
        self.assertEqual(restored, 1)
        self.assertEqual(entries[0].translation, "Merhaba")
        self.assertEqual(entries[1].translation, "Selam")
        self.assertEqual(entries[2].translation, "")


class TestContentCacheFile(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp_dir.name, "translation_cache.json")

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_save_and_load(self):
        cache = ContentCache(self.path)
        cache.put("Hello", "Merhaba")
        cache.save()

        loaded = ContentCache(self.path)
        self.assertEqual(loaded.load(), 1)
        self.assertEqual(loaded.lookup("Hello"), "Merhaba")

    def test_missing_file_loads_empty(self):
        cache = ContentCache(self.path)
        self.assertEqual(cache.load(), 0)

    def test_corrupt_file_loads_empty(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        cache = ContentCache(self.path)
        with self.assertLogs("translator.content_cache", level="ERROR"):
            self.assertEqual(cache.load(), 0)
        self.assertEqual(cache.size(), 0)

    def test_save_without_path_is_noop(self):
        cache = ContentCache()
        cache.put("Hello", "Merhaba")
        cache.save()
        self.assertEqual(os.listdir(self.tmp_dir.name), [])


if __name__ == "__main__":
    unittest.main()
