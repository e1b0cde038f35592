"""请求节奏控制: 最近请求窗口与下一次请求的等待时间."""

import math
import time
from collections import deque
from typing import Callable, Deque, Optional

from config.logging_config import get_logger
from translator.rate_profiles import RateProfileRegistry

logger = get_logger(__name__)

WINDOW_SECONDS = 60.0
DEFAULT_DELAY_MS = 3000
MIN_DELAY_MS = 1000
MAX_DELAY_MS = 30000
SPACING_FACTOR = 1.2


class RequestWindow:
    """最近请求时间戳队列，仅用于估算每分钟请求数."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._timestamps: Deque[float] = deque()

    def record(self, at: Optional[float] = None) -> None:
        self._timestamps.append(self.clock() if at is None else at)

    def prune(self, now: Optional[float] = None) -> int:
        """移除60秒以前的请求，返回剩余数量."""
        now = self.clock() if now is None else now
        cutoff = now - WINDOW_SECONDS
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()
        return len(self._timestamps)

    def oldest(self) -> Optional[float]:
        return self._timestamps[0] if self._timestamps else None

    def clear(self) -> None:
        self._timestamps.clear()

    def __len__(self) -> int:
        return len(self._timestamps)


class DelayCalculator:
    """根据模型配额计算下一次请求前应等待的毫秒数."""

    def __init__(self, registry: RateProfileRegistry):
        self.registry = registry

    def next_delay(self, model: str, window: RequestWindow) -> int:
        """
        计算等待时间(毫秒).

        窗口已满时等待最早的请求移出窗口(至少1秒)；否则按配额均匀分布请求，
        并留出20%余量，限制在1~30秒之间。每分钟不限时使用固定的3秒。
        """
        profile = self.registry.resolve(model)
        if not profile.rpm_bounded:
            return DEFAULT_DELAY_MS

        now = window.clock()
        requests_in_window = window.prune(now)
        rpm = profile.requests_per_minute
        remaining = max(0, rpm - requests_in_window)

        if remaining == 0:
            oldest = window.oldest()
            elapsed_ms = (now - oldest) * 1000 if oldest is not None else 0
            wait_ms = max(math.ceil(WINDOW_SECONDS * 1000 - elapsed_ms), MIN_DELAY_MS)
            logger.info(
                f"Rate limit reached ({rpm}/min), waiting {wait_ms / 1000:.1f}s"
            )
            return wait_ms

        delay = int(math.ceil(WINDOW_SECONDS * 1000 / rpm) * SPACING_FACTOR)
        delay = max(MIN_DELAY_MS, min(delay, MAX_DELAY_MS))
        logger.debug(
            f"Optimal delay for {model}: {delay / 1000:.1f}s "
            f"({remaining} requests remaining this minute)"
        )
        return delay
