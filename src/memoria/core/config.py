"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: MEMORIA_
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MEMORIA_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Semantic memory store
    mem0_api_key: str = Field(default="", description="Mem0 platform API key")

    # Structured generation (OpenAI-compatible endpoint)
    llm_api_key: str = Field(default="", description="Memory model API key")
    llm_base_url: str = Field(
        default="https://api.siliconflow.cn/v1",
        description="Memory model endpoint (OpenAI-compatible)",
    )
    memory_model: str = Field(
        default="openai/Qwen/Qwen3-8B",
        description="LiteLLM model name used for extraction",
    )
    llm_temperature: float = Field(default=0.3, description="Extraction temperature")
    llm_max_tokens: int = Field(default=1024, description="Extraction max tokens")

    # Limits
    retrieval_limit: int = Field(default=5, description="Memories per tier in prompts")
    candidate_limit: int = Field(default=3, description="Existing memories compared on write")

    @property
    def memory_enabled(self) -> bool:
        return bool(self.mem0_api_key)

    @property
    def extraction_enabled(self) -> bool:
        return bool(self.llm_api_key)


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
