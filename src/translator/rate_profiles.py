"""模型配额数据与查找规则."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from config.logging_config import get_logger

logger = get_logger(__name__)

# -1 表示该维度不限
UNBOUNDED = -1


@dataclass(frozen=True)
class RateProfile:
    """模型配额: 每分钟请求数、每天请求数、每分钟token数."""

    requests_per_minute: int
    requests_per_day: int
    tokens_per_minute: int

    @property
    def rpm_bounded(self) -> bool:
        return self.requests_per_minute != UNBOUNDED


def _profile(rpm: int, rpd: int, tpm: int) -> RateProfile:
    return RateProfile(rpm, rpd, tpm)


KNOWN_RATE_PROFILES: Dict[str, RateProfile] = {
    # Gemini 3
    "gemini-3-pro-preview": _profile(5, 50, 250000),
    "gemini-3-flash-preview": _profile(10, 200, 1000000),
    "gemini-3-flash-thinking": _profile(5, 50, 250000),
    # Gemini 2.5
    "gemini-2.5-pro": _profile(2, 50, 250000),
    "gemini-2.5-pro-001": _profile(2, 50, 250000),
    "gemini-2.5-flash": _profile(15, 1500, 1000000),
    "gemini-2.5-flash-001": _profile(15, 1500, 1000000),
    "gemini-2.5-flash-lite": _profile(30, 2000, 1000000),
    "gemini-2.5-flash-lite-001": _profile(30, 2000, 1000000),
    "gemini-2.5-flash-8b": _profile(30, 2000, 1000000),
    # Gemini 2.0
    "gemini-2.0-pro": _profile(5, 100, 500000),
    "gemini-2.0-flash": _profile(15, 1500, 1000000),
    "gemini-2.0-flash-001": _profile(15, 1500, 1000000),
    "gemini-2.0-flash-lite": _profile(30, 1500, 1000000),
    "gemini-2.0-flash-exp": _profile(15, 1500, 1000000),
    # 图像
    "gemini-2.5-flash-image": _profile(10, 1500, UNBOUNDED),
    "gemini-2.0-flash-image": _profile(10, 1500, UNBOUNDED),
    "imagen-3.0-generate-002": _profile(2, 100, UNBOUNDED),
    "imagen-3.0-capability-001": _profile(2, 100, UNBOUNDED),
    # 音频
    "gemini-2.5-flash-audio": _profile(5, 500, UNBOUNDED),
    "gemini-live-2.5-flash": _profile(3, UNBOUNDED, UNBOUNDED),
    # 实验模型
    "gemini-exp-2026": _profile(5, 50, 250000),
    "gemini-2.5-pro-exp-0205": _profile(5, 50, 250000),
    "gemini-2.0-flash-thinking-exp": _profile(5, 50, 250000),
    "learnlm-1.5-pro-experimental": _profile(5, 50, 250000),
    # 开源模型
    "gemma-2-27b-it": _profile(15, 1500, 250000),
    "gemma-2-9b-it": _profile(30, 2000, 500000),
    "gemma-2-2b-it": _profile(30, UNBOUNDED, 1000000),
    # Embedding
    "text-embedding-005": _profile(100, 10000, UNBOUNDED),
    "text-multilingual-embedding-002": _profile(100, 10000, UNBOUNDED),
    # 旧版本
    "gemini-1.5-pro-latest": _profile(2, 50, 32000),
    "gemini-1.5-flash-latest": _profile(15, 1500, 1000000),
    "gemini-1.5-flash-8b-latest": _profile(15, 1500, 1000000),
    "gemini-1.5-pro": _profile(2, 50, 32000),
    "gemini-1.5-flash": _profile(15, 1500, 1000000),
    "gemini-pro": _profile(60, 1500, 120000),
    # 特殊任务
    "aqa": _profile(5, 100, UNBOUNDED),
    "med-gemini-preview": _profile(2, 20, 100000),
    # 别名
    "gemini-flash-latest": _profile(15, 1500, 1000000),
    "gemini-flash-lite-latest": _profile(30, 2000, 1000000),
    "gemini-pro-latest": _profile(5, 100, 500000),
}

# 未知模型的保守默认值
CONSERVATIVE_PROFILE = _profile(2, 20, 10000)


def _contains_any(*fragments: str) -> Callable[[str], bool]:
    return lambda name: any(fragment in name for fragment in fragments)


def _contains_all(*fragments: str) -> Callable[[str], bool]:
    return lambda name: all(fragment in name for fragment in fragments)


def _either(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda name: any(predicate(name) for predicate in predicates)


# 按顺序匹配，先命中者生效
TIER_RULES: List[Tuple[str, Callable[[str], bool], RateProfile]] = [
    ("gemini-3-pro", _contains_any("3-pro", "3.0"), _profile(5, 50, 250000)),
    ("gemini-3-flash", _contains_any("3-flash", "3-"), _profile(10, 200, 1000000)),
    ("gemini-2.5-pro", _contains_any("2.5-pro"), _profile(2, 50, 250000)),
    (
        "gemini-2.5-flash-lite",
        _either(_contains_any("2.5-flash-lite"), _contains_all("2.5", "lite")),
        _profile(30, 2000, 1000000),
    ),
    ("gemini-2.5-flash", _contains_any("2.5-flash", "2.5"), _profile(15, 1500, 1000000)),
    ("gemini-2.0-pro", _contains_any("2.0-pro"), _profile(5, 100, 500000)),
    (
        "gemini-2.0-flash-lite",
        _either(_contains_any("2.0-flash-lite"), _contains_all("2.0", "lite")),
        _profile(30, 1500, 1000000),
    ),
    ("gemini-2.0-flash", _contains_any("2.0-flash", "2.0"), _profile(15, 1500, 1000000)),
    ("gemini-1.5-pro", _contains_any("1.5-pro"), _profile(2, 50, 32000)),
    ("gemini-1.5-flash", _contains_any("1.5-flash"), _profile(15, 1500, 1000000)),
    ("gemma", _contains_any("gemma"), _profile(30, 2000, 500000)),
    (
        "experimental",
        _contains_any("exp", "preview", "experimental"),
        _profile(5, 50, 250000),
    ),
    ("embedding", _contains_any("embedding"), _profile(100, 10000, UNBOUNDED)),
    ("image", _contains_any("image", "imagen"), _profile(10, 1500, UNBOUNDED)),
    ("audio", _contains_any("audio", "live"), _profile(5, 500, UNBOUNDED)),
]

MODEL_TOKEN_LIMITS: Dict[str, int] = {
    "gemini-3-pro-preview": 2000000,
    "gemini-3-flash-preview": 1000000,
    "gemini-2.5-pro": 2000000,
    "gemini-2.5-flash": 1000000,
    "gemini-2.0-flash": 1000000,
    "gemini-1.5-pro": 2000000,
    "gemini-1.5-flash": 1000000,
    "gemini-pro": 30720,
}

DEFAULT_TOKEN_LIMIT = 30720


def normalize_model_name(model_name: str) -> str:
    name = (model_name or "").strip()
    if name.startswith("models/"):
        name = name[len("models/") :]
    return name


def _substring_lookup(name: str, table: Mapping[str, object]) -> Optional[object]:
    for key, value in table.items():
        if key in name or name in key:
            return value
    return None


class RateProfileRegistry:
    """
    模型配额注册表.

    查找顺序: 精确匹配 → 双向子串匹配 → 按名称片段的分级规则 → 保守默认值。
    总能返回可用的配额；初始化后表不可变，同一名称总是得到同一结果。
    """

    def __init__(
        self,
        profiles: Optional[Mapping[str, RateProfile]] = None,
        token_limits: Optional[Mapping[str, int]] = None,
    ):
        self._profiles = MappingProxyType(
            dict(KNOWN_RATE_PROFILES if profiles is None else profiles)
        )
        self._token_limits = MappingProxyType(
            dict(MODEL_TOKEN_LIMITS if token_limits is None else token_limits)
        )
        self._resolved: Dict[str, RateProfile] = {}

    @property
    def profiles(self) -> Mapping[str, RateProfile]:
        return self._profiles

    def resolve(self, model_name: str) -> RateProfile:
        """解析模型配额."""
        name = normalize_model_name(model_name)
        if name in self._resolved:
            return self._resolved[name]

        profile, source = self._lookup(name)
        logger.debug(
            f"Rate profile for '{name}' ({source}): "
            f"{profile.requests_per_minute}/min, {profile.requests_per_day}/day"
        )
        self._resolved[name] = profile
        return profile

    def _lookup(self, name: str) -> Tuple[RateProfile, str]:
        if name in self._profiles:
            return self._profiles[name], "exact"

        matched = _substring_lookup(name, self._profiles)
        if matched is not None:
            return matched, "pattern"

        for tier, predicate, profile in TIER_RULES:
            if predicate(name):
                return profile, f"tier:{tier}"

        return CONSERVATIVE_PROFILE, "default"

    def token_limit(self, model_name: str) -> int:
        """模型输入token上限."""
        name = normalize_model_name(model_name)
        if name in self._token_limits:
            return self._token_limits[name]
        matched = _substring_lookup(name, self._token_limits)
        if matched is not None:
            return matched
        return DEFAULT_TOKEN_LIMIT
