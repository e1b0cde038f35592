"""应用配置管理模块."""

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

API_KEY_PLACEHOLDER = "YOUR_API_KEY_HERE"


class TranslationConfig(BaseModel):
    """单次翻译运行所需的配置."""

    api_key: str = ""
    model: str = ""
    target_language: str = "Turkish"
    context: str = "game localization"
    # 为空时使用内置批量翻译模板
    custom_prompt: str = ""


class Settings(BaseSettings):
    """应用配置类."""

    openai_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/"
    )
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gemini-2.5-flash")
    request_timeout: int = Field(default=30, ge=1, le=300)
    # 翻译设置
    target_language: str = Field(default="Turkish")
    translation_context: str = Field(default="game localization")
    custom_prompt: str = Field(default="")
    # 每1000字符的价格 (输入, 输出)
    model_pricing: Dict[str, Tuple[float, float]] = Field(default_factory=dict)
    cache_file: str = Field(default="translation_cache.json")
    output_dir: str = Field(default="output")
    max_file_size: int = Field(default=10485760, ge=1024, le=104857600)
    log_level: str = Field(default="INFO")

    class Config:
        """Pydantic配置."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def translation_config(self, **overrides: Optional[str]) -> TranslationConfig:
        """根据当前配置构建翻译配置，忽略值为None的覆盖项."""
        values = {
            "api_key": self.openai_api_key,
            "model": self.openai_model,
            "target_language": self.target_language,
            "context": self.translation_context,
            "custom_prompt": self.custom_prompt,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return TranslationConfig(**values)


settings = Settings()
