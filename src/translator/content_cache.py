"""基于原文内容哈希的翻译缓存."""

import hashlib
import json
import os
import tempfile
from typing import Dict, Iterable, Optional

from config.logging_config import get_logger
from translator.entries import Entry

logger = get_logger(__name__)


def make_cache_key(text: str) -> str:
    """生成缓存键: 原文UTF-8字节的MD5，大写十六进制."""
    return hashlib.md5(text.encode("utf-8")).hexdigest().upper()


class ContentCache:
    """
    原文 → 译文缓存.

    以原文内容而非条目key寻址，不同条目或文件中的相同原文复用同一条译文。
    没有淘汰策略，只有 clear() 会清空。
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._store: Dict[str, str] = {}

    def lookup(self, text: str) -> Optional[str]:
        """查找缓存的译文，未命中返回None."""
        return self._store.get(make_cache_key(text))

    def put(self, text: str, translation: str) -> None:
        """写入译文，重复写入相同内容是幂等的."""
        if not translation:
            logger.debug("Skipping empty translation for cache")
            return
        self._store[make_cache_key(text)] = translation

    def clear(self) -> None:
        self._store.clear()

    def size(self) -> int:
        return len(self._store)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, text: str) -> bool:
        return make_cache_key(text) in self._store

    def snapshot(self) -> Dict[str, str]:
        return dict(self._store)

    def persist(self) -> bytes:
        """整体序列化为 哈希 → 译文 的JSON映射."""
        return json.dumps(self._store, ensure_ascii=False, indent=2).encode("utf-8")

    def restore(self, blob: bytes) -> None:
        """
        从序列化数据整体恢复缓存.

        Raises:
            ValueError: 数据不是 字符串 → 字符串 的JSON对象
        """
        data = json.loads(blob.decode("utf-8")) if blob else {}
        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise ValueError("缓存数据格式无效: 需要字符串到字符串的映射")
        self._store = dict(data)

    def load(self) -> int:
        """从 path 读取缓存文件，返回加载的条目数."""
        if not self.path or not os.path.exists(self.path):
            return 0
        try:
            with open(self.path, "rb") as f:
                self.restore(f.read())
        except (OSError, ValueError) as e:
            logger.error(f"Cache load error ({self.path}): {e}")
            self._store = {}
            return 0
        logger.info(f"Cache loaded - {self.size()} entries")
        return self.size()

    def save(self) -> None:
        """整体写回 path，先写临时文件再替换."""
        if not self.path:
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(self.persist())
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Cache saved - {self.size()} entries to {self.path}")

    def restore_translations(self, entries: Iterable[Entry]) -> int:
        """为译文为空的条目填入缓存中的译文，返回填入数量."""
        restored = 0
        for entry in entries:
            if entry.translation or not entry.source_text:
                continue
            cached = self.lookup(entry.source_text)
            if cached is not None:
                entry.translation = cached
                restored += 1
        return restored
