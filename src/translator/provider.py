"""翻译服务提供方接口与 OpenAI 兼容实现."""

from abc import ABC, abstractmethod
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from config.settings import settings
from config.logging_config import get_logger
from translator.exceptions import RateLimited, TransportFailure

logger = get_logger(__name__)

SYSTEM_MESSAGE = (
    "You are a professional game localization translator. "
    "Return only the requested JSON."
)


class TranslationProvider(ABC):
    """批量翻译能力: 接收完整提示词，返回模型原始文本."""

    @abstractmethod
    async def translate_batch(self, prompt: str) -> str:
        """
        发送一次批量翻译请求.

        Raises:
            RateLimited: 配额耗尽
            TransportFailure: 其他网络或服务端错误
        """

    async def list_models(self) -> List[str]:
        return []


class OpenAICompatibleProvider(TranslationProvider):
    """AsyncOpenAI-based provider, works with any OpenAI-compatible endpoint."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.3,
        top_p: float = 0.8,
    ):
        self.client = AsyncOpenAI(
            api_key=api_key if api_key is not None else settings.openai_api_key,
            base_url=base_url or settings.openai_base_url,
            timeout=timeout or settings.request_timeout,
            # 重试由 RetryController 负责
            max_retries=0,
        )
        self.model = model
        self.temperature = temperature
        self.top_p = top_p

    async def translate_batch(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                top_p=self.top_p,
            )
        except openai.RateLimitError as e:
            raise RateLimited(
                f"{self.model} rate limited (429): {e}", code="rate_limited"
            ) from e
        except openai.APIStatusError as e:
            if e.status_code == 429:
                raise RateLimited(
                    f"{self.model} rate limited (429): {e}", code="rate_limited"
                ) from e
            raise TransportFailure(
                f"{self.model} API error ({e.status_code}): {e}",
                code="api_error",
                details={"status_code": e.status_code},
            ) from e
        except openai.APIError as e:
            raise TransportFailure(
                f"{self.model} API call failed: {e}", code="transport_error"
            ) from e

        if response.usage:
            logger.debug(f"API call used {response.usage.total_tokens} tokens")
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def list_models(self) -> List[str]:
        """列出服务端可用模型，去掉 'models/' 前缀."""
        models = []
        try:
            async for model in self.client.models.list():
                models.append(model.id.replace("models/", ""))
        except openai.APIError as e:
            raise TransportFailure(f"Error fetching models: {e}") from e
        logger.info(f"Found {len(models)} models")
        return models
