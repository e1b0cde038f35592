"""批量翻译提示词构建."""

from typing import Optional, Sequence

LANGUAGE_PLACEHOLDER = "{LANGUAGE}"
CONTEXT_PLACEHOLDER = "{CONTEXT}"
TEXTS_PLACEHOLDER = "{TEXTS}"

DEFAULT_BATCH_PROMPT = """You are a professional game localization translator. Translate the following English texts to {LANGUAGE}.

IMPORTANT RULES:
1. Provide ONLY ONE best translation for each text
2. Keep the gaming context and natural flow
3. Use {LANGUAGE} gaming terminology when appropriate
4. Be concise and accurate
5. Return translations in the exact JSON format shown below

Context: {CONTEXT}

Input texts to translate:
{TEXTS}

Return your translations in this exact JSON format:
{
  "translations": [
    {"index": 1, "translation": "Translation here"},
    {"index": 2, "translation": "Translation here"}
  ]
}

Only return the JSON, no explanations or additional text."""


def format_numbered_texts(texts: Sequence[str]) -> str:
    """构建编号列表: 每行 `N. "原文"`，编号从1开始."""
    return "\n".join(f'{i}. "{text}"' for i, text in enumerate(texts, 1))


def build_batch_prompt(
    texts: Sequence[str],
    target_language: str,
    context: str,
    template: Optional[str] = None,
) -> str:
    """
    构建批量翻译提示.

    占位符按原样替换，不做格式化转义，自定义模板中的其它花括号保持不变。
    """
    prompt = template or DEFAULT_BATCH_PROMPT
    prompt = prompt.replace(LANGUAGE_PLACEHOLDER, target_language)
    prompt = prompt.replace(CONTEXT_PLACEHOLDER, context)
    return prompt.replace(TEXTS_PLACEHOLDER, format_numbered_texts(texts))
