"""API数据模型定义."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class EntryPayload(BaseModel):
    """本地化条目数据模型."""

    key: str
    source_text: str
    translation: str = ""
    selected: bool = False


class TranslateRequest(BaseModel):
    """翻译请求数据模型."""

    entries: List[EntryPayload]
    model: Optional[str] = None
    target_language: Optional[str] = None
    context: Optional[str] = None
    custom_prompt: Optional[str] = None
    selected_only: bool = False
    limit: Optional[int] = Field(default=None, ge=1)


class RunControlResponse(BaseModel):
    """暂停/恢复/取消的响应."""

    accepted: bool
    status: str


class ModelInfo(BaseModel):
    """模型及其配额."""

    name: str
    requests_per_minute: int
    requests_per_day: int
    tokens_per_minute: int


class StatsResponse(BaseModel):
    """统计信息."""

    cache_size: int
    usage: Dict[str, float]
    run: Optional[Dict] = None


class ProgressMessage(BaseModel):
    """进度消息数据模型."""

    type: str  # "progress", "log", "result", "complete", "error", "file"
    progress: Optional[float] = None
    message: Optional[str] = None
    filename: Optional[str] = None
    content: Optional[str] = None  # Base64编码的文件内容
    entries: Optional[List[EntryPayload]] = None
    state: Optional[Dict] = None


class SSEMessageType:
    """SSE消息类型常量."""

    PROGRESS = "progress"
    LOG = "log"
    RESULT = "result"
    COMPLETE = "complete"
    ERROR = "error"
    FILE = "file"
