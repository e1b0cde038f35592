"""
翻译引擎异常定义.

独立成模块，避免 provider / retry / run_controller 之间的循环导入。
"""


class TranslationError(Exception):
    """Translation engine error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConfigurationInvalid(TranslationError):
    """缺少API凭证或模型，运行开始前即失败."""


class RateLimited(TranslationError):
    """服务端返回配额耗尽 (HTTP 429)."""


class TransportFailure(TranslationError):
    """除限流以外的网络或服务端错误."""


class MalformedResponse(TranslationError):
    """模型响应无法按结构化格式解析."""


class RunAlreadyActive(TranslationError):
    """已有翻译任务在运行."""
