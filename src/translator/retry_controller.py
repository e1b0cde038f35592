"""单次批量请求的有限重试."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from config.logging_config import get_logger
from translator.delay_calculator import DelayCalculator, RequestWindow
from translator.exceptions import RateLimited
from translator.provider import TranslationProvider
from translator.rate_profiles import RateProfile

logger = get_logger(__name__)

MIN_RETRIES = 2
MAX_RETRIES = 5


@dataclass
class CallOutcome:
    """一次受重试保护的调用结果."""

    text: Optional[str]
    attempts: int
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.text is not None


def max_retries_for(profile: RateProfile) -> int:
    """配额越宽松，重试预算越多: min(5, rpm/10)，至少2次."""
    if not profile.rpm_bounded:
        return MAX_RETRIES
    return max(MIN_RETRIES, min(MAX_RETRIES, profile.requests_per_minute // 10))


class RetryController:
    """在 provider 调用外层做有限次重试，限流时等待时间随尝试次数递增."""

    def __init__(
        self,
        delay_calculator: DelayCalculator,
        window: RequestWindow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.delay_calculator = delay_calculator
        self.window = window
        self._sleep = sleep

    def max_retries(self, model: str) -> int:
        return max_retries_for(self.delay_calculator.registry.resolve(model))

    async def call(
        self,
        prompt: str,
        provider: TranslationProvider,
        model: str,
        max_retries: Optional[int] = None,
    ) -> CallOutcome:
        """
        调用 provider，失败时重试.

        Args:
            prompt: 批量翻译提示词
            provider: 翻译服务
            model: 模型名称，用于计算等待时间
            max_retries: 最大尝试次数，默认由模型配额推导

        Returns:
            CallOutcome，重试耗尽时 text 为 None
        """
        if max_retries is None:
            max_retries = self.max_retries(model)

        last_error: Optional[Exception] = None
        for attempt in range(max_retries):
            # 先记录请求，窗口需要覆盖正在进行的请求
            self.window.record()
            try:
                text = await provider.translate_batch(prompt)
                return CallOutcome(text=text, attempts=attempt + 1)
            except RateLimited as e:
                last_error = e
                if attempt < max_retries - 1:
                    delay = self.delay_calculator.next_delay(model, self.window) * (
                        attempt + 1
                    )
                    logger.warning(
                        f"Rate limited (429), waiting {delay / 1000:.1f}s "
                        f"before retry {attempt + 1}/{max_retries}"
                    )
                    await self._sleep(delay / 1000)
            except Exception as e:
                last_error = e
                if attempt < max_retries - 1:
                    delay = self.delay_calculator.next_delay(model, self.window)
                    logger.warning(
                        f"Batch request attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay / 1000:.1f}s"
                    )
                    await self._sleep(delay / 1000)

        logger.error(
            f"Batch translation failed after {max_retries} attempts: {last_error}"
        )
        return CallOutcome(text=None, attempts=max_retries, error=last_error)
