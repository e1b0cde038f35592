"""本地化条目数据结构."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


@dataclass
class Entry:
    """本地化条目."""

    # 条目标识，引擎不对其做任何解析
    key: str

    # 原文，决定缓存与分批
    source_text: str

    # 译文，未翻译或未命中缓存前为空
    translation: str = ""

    # 用户是否勾选
    selected: bool = False

    @property
    def is_translated(self) -> bool:
        return bool(self.translation)


def pending_entries(
    entries: Iterable[Entry], selected_only: bool = False, limit: Optional[int] = None
) -> List[Entry]:
    """
    筛选需要翻译的条目.

    Args:
        entries: 全部条目
        selected_only: 仅保留已勾选的条目
        limit: 最多返回的条目数量

    Returns:
        原文非空且译文为空的条目，保持原有顺序
    """
    pending = [
        entry
        for entry in entries
        if entry.source_text
        and not entry.translation
        and (entry.selected or not selected_only)
    ]
    if limit is not None:
        pending = pending[: max(limit, 0)]
    return pending


def translation_progress(entries: Iterable[Entry]) -> Dict[str, float]:
    """统计翻译进度."""
    entries = list(entries)
    total = len(entries)
    translated = sum(1 for entry in entries if entry.is_translated)
    return {
        "total": total,
        "translated": translated,
        "untranslated": total - translated,
        "progress_percent": (translated * 100.0 / total) if total else 0.0,
    }
