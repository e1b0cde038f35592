"""
翻译运行控制器.

驱动完整的批次循环: 分批 → 缓存过滤 → 受重试保护的 provider 调用 →
写回缓存 → 累计成本 → 批次间等待。支持暂停、恢复与取消。

批次串行执行，请求窗口与运行计数不支持并发修改。挂起点只有三处:
暂停等待、provider 调用、批次间等待，三者都能被同一个取消信号打断。
一个批次的译文在结果就绪后一次性写入条目，取消不会留下写了一半的批次。
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from config.settings import API_KEY_PLACEHOLDER, TranslationConfig
from config.logging_config import get_logger
from translator.batch_planner import BatchPlanner, TranslationBatch
from translator.content_cache import ContentCache
from translator.cost_estimator import CostEstimator, UsageTotals
from translator.delay_calculator import DelayCalculator, RequestWindow
from translator.entries import Entry, pending_entries
from translator.exceptions import ConfigurationInvalid, RunAlreadyActive
from translator.prompt_builder import build_batch_prompt
from translator.provider import TranslationProvider
from translator.rate_profiles import RateProfileRegistry
from translator.response_parser import parse_batch_response
from translator.retry_controller import RetryController

logger = get_logger(__name__)

OutputSaver = Callable[[List[Entry]], None]


class RunStatus(str, Enum):
    """运行状态."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RunState:
    """单次运行的状态与计数."""

    status: RunStatus = RunStatus.IDLE
    cancellation_requested: bool = False
    total_entries: int = 0
    total_batches: int = 0
    completed_batches: int = 0
    success_count: int = 0
    fail_count: int = 0
    cumulative_cost: float = 0.0
    cost_is_approximate: bool = False
    api_call_count: int = 0
    cache_hit_count: int = 0
    input_chars: int = 0
    output_chars: int = 0

    @property
    def is_running(self) -> bool:
        return self.status in (RunStatus.RUNNING, RunStatus.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.status == RunStatus.PAUSED

    @property
    def progress_percent(self) -> float:
        if not self.total_batches:
            return 100.0 if self.status == RunStatus.COMPLETED else 0.0
        return self.completed_batches * 100.0 / self.total_batches

    def to_dict(self) -> dict:
        data = dataclasses.asdict(self)
        data["status"] = self.status.value
        data["is_running"] = self.is_running
        data["is_paused"] = self.is_paused
        data["progress_percent"] = self.progress_percent
        return data


class RunObserver:
    """运行回调，全部在工作协程中同步调用，默认什么都不做."""

    def on_progress(self, state: RunState, message: str) -> None:
        pass

    def on_log(self, message: str, level: int = logging.INFO) -> None:
        pass

    def on_complete(self, state: RunState) -> None:
        pass


def validate_translation_config(config: TranslationConfig) -> None:
    """
    检查API凭证与模型是否已配置.

    Raises:
        ConfigurationInvalid: 缺少凭证或模型
    """
    api_key = (config.api_key or "").strip()
    if not api_key or api_key == API_KEY_PLACEHOLDER:
        raise ConfigurationInvalid(
            "API key not configured",
            code="config_missing",
            details={"missing_field": "api_key"},
        )
    if not (config.model or "").strip():
        raise ConfigurationInvalid(
            "Model not configured",
            code="config_missing",
            details={"missing_field": "model"},
        )


class RunController:
    """串行批量翻译循环，一次只允许一个运行."""

    def __init__(
        self,
        config: TranslationConfig,
        provider: TranslationProvider,
        cache: Optional[ContentCache] = None,
        registry: Optional[RateProfileRegistry] = None,
        planner: Optional[BatchPlanner] = None,
        delay_calculator: Optional[DelayCalculator] = None,
        cost_estimator: Optional[CostEstimator] = None,
        observer: Optional[RunObserver] = None,
        window: Optional[RequestWindow] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.provider = provider
        self.cache = cache if cache is not None else ContentCache()
        self.registry = registry or RateProfileRegistry()
        self.planner = planner or BatchPlanner()
        self.delay_calculator = delay_calculator or DelayCalculator(self.registry)
        self.cost_estimator = cost_estimator or CostEstimator()
        self.observer = observer or RunObserver()
        self.window = window if window is not None else RequestWindow()
        self.retry_controller = RetryController(
            self.delay_calculator, self.window, sleep=sleep
        )
        self._sleep = sleep

        self.state = RunState()
        self.usage = UsageTotals()
        self._active = False
        self._cancel_event = asyncio.Event()
        self._resume_event = asyncio.Event()
        self._resume_event.set()

    # ------------------------------------------------------------------
    # 运行之间的操作
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def _ensure_idle(self, operation: str) -> None:
        if self._active:
            raise RunAlreadyActive(
                f"Cannot {operation} while a translation run is active",
                code="run_active",
            )

    def configure(
        self,
        config: TranslationConfig,
        provider: TranslationProvider,
        observer: Optional[RunObserver] = None,
    ) -> None:
        """更换下一次运行使用的配置、provider 与回调."""
        self._ensure_idle("reconfigure")
        self.config = config
        self.provider = provider
        if observer is not None:
            self.observer = observer

    def clear_cache(self) -> int:
        """清空缓存并持久化，返回清除的条目数."""
        self._ensure_idle("clear the cache")
        cleared = self.cache.size()
        self.cache.clear()
        self.cache.save()
        self._log(f"Cache cleared ({cleared} entries)")
        return cleared

    def reset_usage(self) -> None:
        self._ensure_idle("reset usage")
        self.usage = UsageTotals()

    def snapshot(self) -> RunState:
        """当前运行状态的副本，只在批次之间变化."""
        return dataclasses.replace(self.state)

    # ------------------------------------------------------------------
    # 用户控制
    # ------------------------------------------------------------------

    def pause(self) -> bool:
        if self.state.status != RunStatus.RUNNING:
            logger.debug("Pause ignored: no running translation")
            return False
        self._resume_event.clear()
        self.state.status = RunStatus.PAUSED
        self._log("Translation paused by user")
        return True

    def resume(self) -> bool:
        if self.state.status != RunStatus.PAUSED:
            logger.debug("Resume ignored: translation is not paused")
            return False
        self.state.status = RunStatus.RUNNING
        self._resume_event.set()
        self._log("Translation resumed by user")
        return True

    def toggle_pause(self) -> bool:
        if self.state.status == RunStatus.PAUSED:
            return self.resume()
        return self.pause()

    def cancel(self) -> bool:
        if not self.state.is_running:
            logger.debug("Cancel ignored: no running translation")
            return False
        self.state.cancellation_requested = True
        self._cancel_event.set()
        self._log("Translation stopped by user")
        return True

    @property
    def cancellation_requested(self) -> bool:
        return self._cancel_event.is_set()

    # ------------------------------------------------------------------
    # 运行循环
    # ------------------------------------------------------------------

    async def run(
        self, entries: Sequence[Entry], save_output: Optional[OutputSaver] = None
    ) -> RunState:
        """
        翻译所有待翻译条目.

        Args:
            entries: 完整条目列表，内部筛选原文非空且译文为空的条目
            save_output: 有成功译文时，用完整条目列表保存目标输出

        Returns:
            运行结束时的状态副本

        Raises:
            RunAlreadyActive: 已有运行在进行
            ConfigurationInvalid: 缺少凭证或模型，不会开始任何批次
        """
        if self._active:
            raise RunAlreadyActive("A translation run is already active", code="run_active")
        validate_translation_config(self.config)

        self._active = True
        # 每次运行重新创建，事件绑定到当前事件循环
        self._cancel_event = asyncio.Event()
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self.state = RunState(status=RunStatus.RUNNING)
        entries = list(entries)

        try:
            await self._run_batches(entries)
            self.state.status = (
                RunStatus.CANCELLED if self.cancellation_requested else RunStatus.COMPLETED
            )
            self._finish(entries, save_output)
        except asyncio.CancelledError:
            self.state.status = RunStatus.CANCELLED
            self._log("Translation was cancelled", logging.WARNING)
            self._finish(entries, save_output)
            raise
        except Exception as e:
            self.state.status = RunStatus.FAILED
            logger.exception(f"Translation run failed: {e}")
            self.observer.on_log(f"Error: {e}", logging.ERROR)
            raise
        finally:
            self._active = False
            self._resume_event.set()
            self.observer.on_complete(self.snapshot())

        return self.snapshot()

    async def _run_batches(self, entries: List[Entry]) -> None:
        to_translate = pending_entries(entries)
        if not to_translate:
            self._log("No entries need translation")
            return

        model = self.config.model
        profile = self.registry.resolve(model)
        batches = self.planner.plan(to_translate, self.registry.token_limit(model))
        max_retries = self.retry_controller.max_retries(model)

        self.state.total_entries = len(to_translate)
        self.state.total_batches = len(batches)
        self.state.cost_is_approximate = self.cost_estimator.is_approximate(model)
        self._log(
            f"Starting batch translation: {len(to_translate)} entries in {len(batches)} batches"
        )
        self._log(
            f"Model: {model} (Rate limits: {profile.requests_per_minute}/min, "
            f"{profile.requests_per_day}/day)"
        )

        for index, batch in enumerate(batches):
            if self.cancellation_requested:
                self._log(f"Translation stopped at batch {index + 1}/{len(batches)}")
                break

            if not self._resume_event.is_set():
                finished, _ = await self._until_cancelled(self._resume_event.wait())
                if not finished:
                    self._log(f"Translation stopped at batch {index + 1}/{len(batches)}")
                    break

            self._log(f"Processing batch {index + 1}/{len(batches)}: {len(batch)} entries")
            if not await self._process_batch(index, batch, max_retries):
                self._log(f"Translation stopped during batch {index + 1}/{len(batches)}")
                break

            if index < len(batches) - 1 and not self.cancellation_requested:
                delay_ms = self.delay_calculator.next_delay(model, self.window)
                if delay_ms > 0:
                    logger.info(
                        f"Waiting {delay_ms / 1000:.1f}s before next batch (rate limit optimization)"
                    )
                    finished, _ = await self._until_cancelled(self._sleep(delay_ms / 1000))
                    if not finished:
                        break

    async def _process_batch(
        self, index: int, batch: TranslationBatch, max_retries: int
    ) -> bool:
        """处理一个批次，被取消时返回False且不写入任何结果."""
        results = {}
        misses: List[int] = []
        for position, entry in enumerate(batch.entries):
            cached = self.cache.lookup(entry.source_text)
            if cached is not None:
                results[position] = cached
            else:
                misses.append(position)
        cache_hits = len(results)

        call_stats: Optional[Tuple[int, int, float]] = None
        if misses:
            miss_entries = [batch.entries[position] for position in misses]
            prompt = build_batch_prompt(
                [entry.source_text for entry in miss_entries],
                self.config.target_language,
                self.config.context,
                self.config.custom_prompt or None,
            )
            finished, outcome = await self._until_cancelled(
                self.retry_controller.call(prompt, self.provider, self.config.model, max_retries)
            )
            if not finished:
                return False

            if outcome.succeeded:
                input_chars, output_chars = len(prompt), len(outcome.text)
                cost = self.cost_estimator.cost(input_chars, output_chars, self.config.model)
                call_stats = (input_chars, output_chars, cost)
                parsed = parse_batch_response(outcome.text, miss_entries)
                for miss_index, translation in parsed.items():
                    results[misses[miss_index]] = translation
                    self.cache.put(miss_entries[miss_index].source_text, translation)
                if not parsed:
                    self._log(
                        f"Batch {index + 1}: response could not be parsed", logging.WARNING
                    )
            else:
                self._log(
                    f"Batch {index + 1} failed after {outcome.attempts} attempts: {outcome.error}",
                    logging.ERROR,
                )

        self._apply_results(index, batch, results, cache_hits, call_stats)
        return True

    def _apply_results(
        self,
        index: int,
        batch: TranslationBatch,
        results: dict,
        cache_hits: int,
        call_stats: Optional[Tuple[int, int, float]],
    ) -> None:
        """把一个批次的结果一次性写入条目与计数."""
        success = 0
        failed = 0
        for position, entry in enumerate(batch.entries):
            if position in results:
                entry.translation = results[position]
                success += 1
                logger.debug(f"{entry.key[:40]}: {entry.translation[:30]}")
            else:
                failed += 1
                self._log(f"Failed: {entry.key[:40]}", logging.WARNING)

        state = self.state
        state.success_count += success
        state.fail_count += failed
        state.cache_hit_count += cache_hits
        state.completed_batches += 1
        self.usage.cache_hits += cache_hits

        if call_stats is not None:
            input_chars, output_chars, cost = call_stats
            state.api_call_count += 1
            state.input_chars += input_chars
            state.output_chars += output_chars
            state.cumulative_cost += cost
            self.usage.add_call(input_chars, output_chars, cost)
            self._log(
                f"Batch translation cost: ${cost:.6f} ({len(batch) - cache_hits} entries, "
                f"Input: {input_chars} chars, Output: {output_chars} chars)"
            )

        message = f"Batch {index + 1} complete: {success} success, {failed} failed"
        self._log(message)
        self.observer.on_progress(self.snapshot(), message)

    async def _until_cancelled(self, awaitable: Awaitable[Any]) -> Tuple[bool, Any]:
        """等待 awaitable 完成或取消信号先到，返回 (是否完成, 结果)."""
        task = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not task.done():
                task.cancel()

        if task.done() and not task.cancelled():
            return True, task.result()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return False, None

    def _finish(self, entries: List[Entry], save_output: Optional[OutputSaver]) -> None:
        state = self.state
        if state.success_count > 0:
            try:
                self.cache.save()
            except OSError as e:
                self._log(f"Cache save error: {e}", logging.ERROR)
            if save_output is not None:
                try:
                    save_output(entries)
                except Exception as e:
                    logger.exception(f"Output save error: {e}")
                    self.observer.on_log(f"Output save error: {e}", logging.ERROR)

        if state.total_entries == 0:
            return

        verb = "stopped" if state.status == RunStatus.CANCELLED else "complete"
        self._log(
            f"Batch translation {verb}: {state.success_count} success, {state.fail_count} failed"
        )
        if state.fail_count > 0:
            self._log("Tips to reduce failures:")
            self._log("  - Wait 15-30 minutes between large batches")
            self._log("  - Try a different model with higher limits")
            self._log("  - Check if API key has sufficient quota")

        efficiency = state.success_count * 100.0 / state.total_entries
        self._log(
            f"Translation efficiency: {efficiency:.1f}% "
            f"({state.success_count}/{state.total_entries})"
        )
        self._log(
            f"Batch efficiency: {state.api_call_count} API calls instead of "
            f"{state.total_entries} (saved {state.total_entries - state.api_call_count} calls)"
        )
        profile = self.registry.resolve(self.config.model)
        self._log(
            f"Rate limit status: {self.window.prune()}/{profile.requests_per_minute} "
            f"requests used this minute"
        )

    def _log(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        self.observer.on_log(message, level)
