"""按字符数估算翻译成本."""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Set, Tuple

from config.logging_config import get_logger
from translator.rate_profiles import normalize_model_name

logger = get_logger(__name__)

# 每1000字符的通用估算价格
GENERIC_INPUT_PRICE = 0.000075
GENERIC_OUTPUT_PRICE = 0.0003


class CostEstimator:
    """按模型价格表(每1000字符)计算成本，未知模型使用通用估价并告警."""

    def __init__(self, pricing: Optional[Mapping[str, Tuple[float, float]]] = None):
        self.pricing: Dict[str, Tuple[float, float]] = {
            normalize_model_name(name): (float(prices[0]), float(prices[1]))
            for name, prices in (pricing or {}).items()
        }
        self._warned: Set[str] = set()

    def is_approximate(self, model: str) -> bool:
        return normalize_model_name(model) not in self.pricing

    def cost(self, input_chars: int, output_chars: int, model: str) -> float:
        """计算一次请求的成本."""
        if input_chars < 0 or output_chars < 0:
            raise ValueError("character counts must be non-negative")

        name = normalize_model_name(model)
        if name in self.pricing:
            input_price, output_price = self.pricing[name]
        else:
            input_price, output_price = GENERIC_INPUT_PRICE, GENERIC_OUTPUT_PRICE
            if name not in self._warned:
                self._warned.add(name)
                logger.warning(
                    f"Using generic pricing for {name} - cost figures are approximate"
                )

        return (input_chars * input_price / 1000.0) + (
            output_chars * output_price / 1000.0
        )


@dataclass
class UsageTotals:
    """跨运行累计的用量统计，只有显式重置才会清零."""

    api_calls: int = 0
    cache_hits: int = 0
    input_chars: int = 0
    output_chars: int = 0
    total_cost: float = 0.0

    def add_call(self, input_chars: int, output_chars: int, cost: float) -> None:
        self.api_calls += 1
        self.input_chars += input_chars
        self.output_chars += output_chars
        self.total_cost += cost
