"""批次规划器 - 按token预算与条目上限切分待翻译条目."""

import math
from dataclasses import dataclass
from typing import List, Sequence

from config.logging_config import get_logger
from translator.entries import Entry

logger = get_logger(__name__)

# 粗略估算: 1 token ≈ 4 个字符
CHARS_PER_TOKEN = 4

# 批量提示词结构本身的开销
BATCH_OVERHEAD_TOKENS = 100

# 每个条目在JSON结构中的额外开销
ENTRY_STRUCTURE_TOKENS = 20

# 单批最多条目数，避免请求过于复杂
MAX_BATCH_ENTRIES = 20

# 只使用模型上限的70%
TOKEN_BUDGET_RATIO = 0.7


@dataclass
class TranslationBatch:
    """翻译批次数据结构."""

    # 批次中的条目，保持输入顺序
    entries: List[Entry]

    # 批次估算的token数量(含批次开销)
    token_count: int

    @property
    def texts(self) -> List[str]:
        return [entry.source_text for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


def estimate_tokens(text: str) -> int:
    """估算文本的token数量."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_entry_tokens(text: str) -> int:
    return estimate_tokens(text) + ENTRY_STRUCTURE_TOKENS


class BatchPlanner:
    """按输入顺序贪心装箱，不重排、不拆分条目."""

    def __init__(
        self,
        max_entries: int = MAX_BATCH_ENTRIES,
        budget_ratio: float = TOKEN_BUDGET_RATIO,
        overhead_tokens: int = BATCH_OVERHEAD_TOKENS,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.budget_ratio = budget_ratio
        self.overhead_tokens = overhead_tokens

    def token_budget(self, token_limit: int) -> int:
        return int(token_limit * self.budget_ratio)

    def plan(self, entries: Sequence[Entry], token_limit: int) -> List[TranslationBatch]:
        """
        创建适合模型上下文限制的翻译批次.

        原文为空的条目直接跳过。单个条目本身超出预算时独占一个批次。

        Args:
            entries: 待翻译条目
            token_limit: 模型输入token上限

        Returns:
            翻译批次列表
        """
        max_tokens = self.token_budget(token_limit)

        batches = []
        current_entries: List[Entry] = []
        current_token_count = self.overhead_tokens

        for entry in entries:
            if not entry.source_text:
                continue

            entry_tokens = estimate_entry_tokens(entry.source_text)

            # 如果添加当前条目会超过token限制，则先关闭当前批次
            if current_token_count + entry_tokens > max_tokens and current_entries:
                batches.append(TranslationBatch(current_entries, current_token_count))
                current_entries = []
                current_token_count = self.overhead_tokens

            current_entries.append(entry)
            current_token_count += entry_tokens

            if len(current_entries) >= self.max_entries:
                batches.append(TranslationBatch(current_entries, current_token_count))
                current_entries = []
                current_token_count = self.overhead_tokens

        if current_entries:
            batches.append(TranslationBatch(current_entries, current_token_count))

        logger.debug(
            f"Planned {len(batches)} batches (budget {max_tokens} tokens, "
            f"max {self.max_entries} entries per batch)"
        )
        return batches
