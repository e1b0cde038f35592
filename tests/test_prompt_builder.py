import unittest

from translator.prompt_builder import build_batch_prompt, format_numbered_texts


class TestPromptBuilder(unittest.TestCase):
    def test_numbered_texts(self):
        self.assertEqual(
            format_numbered_texts(["Start", "Quit"]), '1. "Start"\n2. "Quit"'
        )

    def test_default_template(self):
        prompt = build_batch_prompt(["Start", "Quit"], "Turkish", "main menu")
        self.assertIn("to Turkish.", prompt)
        self.assertIn("Context: main menu", prompt)
        self.assertIn('1. "Start"\n2. "Quit"', prompt)
        self.assertIn('"translations"', prompt)
        self.assertNotIn("{LANGUAGE}", prompt)
        self.assertNotIn("{TEXTS}", prompt)

    def test_custom_template_keeps_other_braces(self):
        template = "Translate into {LANGUAGE} ({CONTEXT}):\n{TEXTS}\nReply as {json}"
        prompt = build_batch_prompt(["Start"], "German", "ui", template)
        self.assertEqual(prompt, 'Translate into German (ui):\n1. "Start"\nReply as {json}')


if __name__ == "__main__":
    unittest.main()
