"""批量翻译结果解析."""

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from config.logging_config import get_logger
from translator.entries import Entry
from translator.exceptions import MalformedResponse

logger = get_logger(__name__)

_NUMBER_PREFIX = re.compile(r"^\s*\d+\s*[.):\-]\s*")
_BULLET_PREFIX = re.compile(r"^\s*[-*•]\s*")


def _strip_code_fence(text: str) -> str:
    lines = text.strip().split("\n")
    if lines and lines[0].startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def match_json_object(text: str) -> Optional[str]:
    """通过括号匹配从混合文本中提取第一个JSON对象."""
    stack = []
    start = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            if not stack:
                start = i
            stack.append("{")
        elif char == "}" and stack:
            stack.pop()
            if not stack and start >= 0:
                return text[start : i + 1]
    return None


def _load_translation_object(text: str) -> Dict[str, Any]:
    """依次尝试: 直接解析、去掉代码块后解析、括号匹配提取后解析."""
    candidates = [text.strip(), _strip_code_fence(text)]
    extracted = match_json_object(text)
    if extracted:
        candidates.append(extracted)

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict) and isinstance(result.get("translations"), list):
            return result

    raise MalformedResponse("响应中没有包含translations列表的JSON对象")


def parse_structured(raw: str, count: int) -> Dict[int, str]:
    """
    解析 {"translations": [{"index": 1, "translation": "..."}]}.

    Returns:
        批次内位置(从0开始) → 译文

    Raises:
        MalformedResponse: 结构解析失败
    """
    payload = _load_translation_object(raw)
    results = {}
    for item in payload["translations"]:
        if not isinstance(item, dict):
            continue
        raw_index = item.get("index")
        # true/false 与 2.7 之类的值不是合法编号
        if isinstance(raw_index, bool) or (
            isinstance(raw_index, float) and not raw_index.is_integer()
        ):
            continue
        try:
            index = int(raw_index)
        except (TypeError, ValueError):
            continue
        translation = item.get("translation")
        if not isinstance(translation, str):
            continue
        translation = translation.strip()
        if 1 <= index <= count and translation:
            results[index - 1] = translation
    return results


def _clean_line(line: str) -> str:
    line = line.strip()
    line = _NUMBER_PREFIX.sub("", line)
    line = _BULLET_PREFIX.sub("", line)
    line = line.strip()
    if len(line) >= 2 and line.startswith('"') and line.endswith('"'):
        line = line[1:-1].strip()
    return line


def parse_lines(raw: str, count: int) -> Dict[int, str]:
    """
    逐行的尽力解析.

    行与条目按位置配对，行数与条目数不一致时可能错配。
    """
    lines: List[str] = [line for line in raw.split("\n") if line.strip()]
    results = {}
    for i in range(min(len(lines), count)):
        cleaned = _clean_line(lines[i])
        if cleaned:
            results[i] = cleaned
    return results


def parse_batch_response(raw: str, entries: Sequence[Entry]) -> Dict[int, str]:
    """
    解析批量翻译结果，永不抛出异常.

    Args:
        raw: 模型原始输出
        entries: 生成该请求的条目(顺序与提示词编号一致)

    Returns:
        批次内位置 → 译文；完全无法解析时返回空字典
    """
    if not raw or not raw.strip() or not entries:
        return {}

    try:
        return parse_structured(raw, len(entries))
    except MalformedResponse as e:
        logger.warning(f"Error parsing batch response: {e}. Falling back to line parsing")

    try:
        results = parse_lines(raw, len(entries))
    except Exception as e:
        logger.error(f"Line parsing failed: {e}")
        return {}

    if len(results) != len(entries):
        logger.warning(
            f"Line parsing recovered {len(results)} of {len(entries)} translations"
        )
    return results
