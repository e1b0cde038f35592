"""翻译服务 - 持有共享的缓存、配额表与唯一的运行控制器."""

from typing import Callable, List, Optional

from config.settings import Settings, TranslationConfig
from config.logging_config import get_logger
from models.models import EntryPayload, ModelInfo, TranslateRequest
from translator.content_cache import ContentCache
from translator.cost_estimator import CostEstimator, UsageTotals
from translator.entries import Entry, pending_entries
from translator.exceptions import RunAlreadyActive
from translator.provider import OpenAICompatibleProvider, TranslationProvider
from translator.rate_profiles import RateProfileRegistry
from translator.run_controller import (
    RunController,
    RunObserver,
    RunState,
    validate_translation_config,
)

logger = get_logger(__name__)

ProviderFactory = Callable[[TranslationConfig], TranslationProvider]


class TranslationService:
    """一个进程只有一个运行控制器，同一时间只允许一个运行."""

    def __init__(
        self,
        settings: Settings,
        provider_factory: Optional[ProviderFactory] = None,
        cache: Optional[ContentCache] = None,
    ):
        self.settings = settings
        self.cache = cache if cache is not None else ContentCache(settings.cache_file)
        if cache is None:
            self.cache.load()
        self.registry = RateProfileRegistry()
        self.cost_estimator = CostEstimator(settings.model_pricing)
        self.provider_factory = provider_factory or self._default_provider
        self.controller: Optional[RunController] = None
        # prepare() 之后、run() 开始之前的保留标记
        self._reserved = False

    def _default_provider(self, config: TranslationConfig) -> TranslationProvider:
        return OpenAICompatibleProvider(
            config.model,
            api_key=config.api_key,
            base_url=self.settings.openai_base_url,
            timeout=self.settings.request_timeout,
        )

    @property
    def is_active(self) -> bool:
        return self._reserved or (
            self.controller is not None and self.controller.is_active
        )

    def build_config(self, request: TranslateRequest) -> TranslationConfig:
        return self.settings.translation_config(
            model=request.model,
            target_language=request.target_language,
            context=request.context,
            custom_prompt=request.custom_prompt,
        )

    def prepare(self, config: TranslationConfig, observer: RunObserver) -> RunController:
        """
        为下一次运行准备控制器.

        Raises:
            RunAlreadyActive: 已有运行在进行
            ConfigurationInvalid: 配置缺失
        """
        if self.is_active:
            raise RunAlreadyActive("A translation run is already active", code="run_active")
        validate_translation_config(config)

        provider = self.provider_factory(config)
        if self.controller is None:
            self.controller = RunController(
                config,
                provider,
                cache=self.cache,
                registry=self.registry,
                cost_estimator=self.cost_estimator,
                observer=observer,
            )
        else:
            self.controller.configure(config, provider, observer)
        self._reserved = True
        return self.controller

    async def execute(
        self,
        entries: List[Entry],
        save_output: Optional[Callable[[List[Entry]], None]] = None,
    ) -> RunState:
        """运行已准备好的控制器."""
        try:
            return await self.controller.run(entries, save_output=save_output)
        finally:
            self._reserved = False

    def release(self) -> None:
        """放弃 prepare() 的保留，用于运行开始前就失败的任务."""
        self._reserved = False

    @staticmethod
    def select_entries(
        entries: List[Entry], selected_only: bool = False, limit: Optional[int] = None
    ) -> List[Entry]:
        """按勾选与数量限制挑出本次要翻译的条目."""
        return pending_entries(entries, selected_only=selected_only, limit=limit)

    def restore_from_cache(self, entries: List[Entry]) -> int:
        restored = self.cache.restore_translations(entries)
        if restored:
            logger.info(f"Restored {restored} translations from cache")
        return restored

    def pause(self) -> bool:
        return self.controller.pause() if self.controller else False

    def resume(self) -> bool:
        return self.controller.resume() if self.controller else False

    def cancel(self) -> bool:
        return self.controller.cancel() if self.controller else False

    def status(self) -> str:
        return self.controller.state.status.value if self.controller else "idle"

    def clear_cache(self) -> int:
        if self.is_active:
            raise RunAlreadyActive("Cannot clear the cache during a run", code="run_active")
        if self.controller is not None:
            return self.controller.clear_cache()
        cleared = self.cache.size()
        self.cache.clear()
        self.cache.save()
        return cleared

    def usage(self) -> UsageTotals:
        return self.controller.usage if self.controller else UsageTotals()

    def run_snapshot(self) -> Optional[RunState]:
        return self.controller.snapshot() if self.controller else None

    async def list_models(self, config: TranslationConfig) -> List[ModelInfo]:
        validate_translation_config(config)
        names = await self.provider_factory(config).list_models()
        models = []
        for name in names:
            profile = self.registry.resolve(name)
            models.append(
                ModelInfo(
                    name=name,
                    requests_per_minute=profile.requests_per_minute,
                    requests_per_day=profile.requests_per_day,
                    tokens_per_minute=profile.tokens_per_minute,
                )
            )
        return models


def to_entries(payloads: List[EntryPayload]) -> List[Entry]:
    return [
        Entry(
            key=p.key,
            source_text=p.source_text,
            translation=p.translation,
            selected=p.selected,
        )
        for p in payloads
    ]


def to_payloads(entries: List[Entry]) -> List[EntryPayload]:
    return [
        EntryPayload(
            key=e.key,
            source_text=e.source_text,
            translation=e.translation,
            selected=e.selected,
        )
        for e in entries
    ]
