"""
Configuration management for the orchestration engine.

Two layers:

* ``OrchestratorConfig`` - the per-deployment generation policy (model, token
  budgets, loop bounds, timeouts, temperature). Immutable; per-request
  overrides produce a validated copy via ``with_overrides``.
* ``Settings`` - process settings loaded from the environment, covering the
  orchestrator policy plus LLM backend credentials, retrieval limits, tool
  backends and logging.

Configuration precedence (highest to lowest):
1. Explicit kwargs passed to Settings()
2. Environment variables (AIORCH_* prefix)
3. .env file
4. pyproject.toml [tool.aiorch] section
5. Hardcoded defaults
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ..models.enums import LogLevel

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "openrouter/anthropic/claude-3.5-sonnet"


def load_pyproject_defaults(path: Path | None = None) -> dict[str, Any]:
    """
    Load defaults from the [tool.aiorch] section in pyproject.toml.

    Returns:
        Dictionary of configuration overrides from pyproject.toml
    """
    pyproject_path = path or Path("pyproject.toml")

    if not pyproject_path.exists():
        return {}

    try:
        with pyproject_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        logger.warning(f"Could not load pyproject.toml: {e}")
        return {}
    except tomllib.TOMLDecodeError as e:
        logger.warning(f"Could not parse pyproject.toml: {e}")
        return {}

    tool_config = data.get("tool", {}).get("aiorch", {})
    if tool_config:
        logger.debug(f"Loaded {len(tool_config)} settings from pyproject.toml")
    return tool_config


class PyProjectTomlSettingsSource(PydanticBaseSettingsSource):
    """
    A pydantic-settings source that loads configuration from pyproject.toml.

    Reads the [tool.aiorch] section so project defaults can live next to the
    packaging metadata.
    """

    def get_field_value(self, field_name: str, field_info: Any) -> tuple[Any, str, bool]:
        """Not used in this implementation."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        return load_pyproject_defaults()


class OrchestratorConfig(BaseModel):
    """
    Per-deployment generation policy.

    Timeouts are in seconds. ``tool_call_timeout`` bounds a single tool call;
    ``total_timeout`` bounds a whole orchestration run. The two budgets are
    independent.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str = Field(default=DEFAULT_MODEL, min_length=1, description="Model id (LiteLLM format)")
    max_input_tokens: int = Field(default=100_000, gt=0)
    max_output_tokens: int = Field(default=4096, gt=0)
    max_tool_calls: int = Field(default=10, ge=0, description="Cumulative tool invocations per run")
    max_iterations: int = Field(default=5, ge=1, description="Completion round-trips per run")
    tool_call_timeout: float = Field(default=30.0, gt=0)
    total_timeout: float = Field(default=120.0, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    def with_overrides(self, overrides: dict[str, Any] | None) -> "OrchestratorConfig":
        """
        Return a validated copy with per-request overrides applied.

        Raises:
            pydantic.ValidationError: If an override has an invalid value or
                names an unknown field
        """
        if not overrides:
            return self
        return OrchestratorConfig.model_validate({**self.model_dump(), **overrides})


class Settings(BaseSettings):
    """
    Process settings for the orchestration engine.

    Loads configuration from AIORCH_* environment variables with sensible
    defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="AIORCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Secret fields that should be excluded from exports by default
    SECRET_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "llm_api_key",
            "workflow_webhook_secret",
        }
    )

    # Orchestrator policy
    model: str = Field(default=DEFAULT_MODEL, description="Model id in LiteLLM format")
    max_input_tokens: int = Field(default=100_000, description="Maximum input tokens")
    max_output_tokens: int = Field(default=4096, description="Maximum output tokens")
    max_tool_calls: int = Field(default=10, description="Cumulative tool calls per run")
    max_iterations: int = Field(default=5, description="Completion round-trips per run")
    tool_call_timeout: float = Field(default=30.0, description="Per tool call timeout (seconds)")
    total_timeout: float = Field(default=120.0, description="Whole run timeout (seconds)")
    temperature: float = Field(default=0.7, description="Sampling temperature")

    # LLM backend (LiteLLM)
    llm_api_key: str | None = Field(default=None, description="Completion backend API key")
    llm_api_base: str | None = Field(
        default="https://openrouter.ai/api/v1", description="Completion backend base URL"
    )
    llm_site_url: str | None = Field(default=None, description="Attribution header HTTP-Referer")
    llm_site_name: str | None = Field(default="aiorch", description="Attribution header X-Title")
    llm_timeout: float = Field(default=60.0, description="Request timeout in seconds")

    # Retrieval limits
    memory_limit: int = Field(default=10, description="Maximum memories per turn")
    knowledge_limit: int = Field(default=5, description="Maximum knowledge chunks per turn")
    conversation_token_budget: int = Field(
        default=4000, description="Token budget for prior conversation"
    )

    # Tool backends
    workflow_base_url: str | None = Field(default=None, description="n8n base URL")
    workflow_webhook_secret: str | None = Field(default=None, description="n8n webhook secret")
    mcp_servers: dict[str, str] = Field(
        default_factory=dict, description="MCP server name -> JSON-RPC endpoint URL"
    )

    # Monitoring and Logging
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    enable_rich_console: bool = Field(
        default=True, description="Enable rich console output (banners, tables)"
    )
    log_file: Path | None = Field(
        default=None,
        description="Path to main application log file (set to None to disable file logging)",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Maximum log file size before rotation"  # 10MB
    )
    log_backup_count: int = Field(default=5, description="Number of backup log files to keep")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Source priority: init kwargs, env, .env, pyproject.toml, secret files."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            PyProjectTomlSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator(
        "max_input_tokens",
        "max_output_tokens",
        "max_iterations",
        "memory_limit",
        "knowledge_limit",
        "conversation_token_budget",
    )
    @classmethod
    def validate_positive_limits(cls, v: int) -> int:
        """Ensure limits are positive"""
        if v <= 0:
            raise ValueError(f"Limit must be positive, got {v}")
        return v

    @field_validator("max_tool_calls")
    @classmethod
    def validate_max_tool_calls(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_tool_calls must be >= 0, got {v}")
        return v

    @field_validator("tool_call_timeout", "total_timeout", "llm_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        """Ensure timeouts are positive"""
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"temperature must be 0.0-2.0, got {v}")
        return v

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        """Cross-field validation of configuration constraints"""
        if self.max_output_tokens > self.max_input_tokens:
            logger.warning(
                f"max_output_tokens ({self.max_output_tokens:,}) > "
                f"max_input_tokens ({self.max_input_tokens:,}). "
                "This may cause issues with some models."
            )
        if self.tool_call_timeout > self.total_timeout:
            logger.warning(
                f"tool_call_timeout ({self.tool_call_timeout}s) > "
                f"total_timeout ({self.total_timeout}s). "
                "A single tool call can exhaust the whole run budget."
            )
        return self

    def orchestrator_config(self) -> OrchestratorConfig:
        """Build the immutable generation policy from these settings."""
        return OrchestratorConfig(
            model=self.model,
            max_input_tokens=self.max_input_tokens,
            max_output_tokens=self.max_output_tokens,
            max_tool_calls=self.max_tool_calls,
            max_iterations=self.max_iterations,
            tool_call_timeout=self.tool_call_timeout,
            total_timeout=self.total_timeout,
            temperature=self.temperature,
        )

    def export_safe(self, include_secrets: bool = False) -> dict[str, Any]:
        """
        Export settings as a plain dictionary.

        Args:
            include_secrets: Whether to include API keys and secrets

        Returns:
            JSON-serializable dictionary of settings
        """
        exclude = None if include_secrets else set(self.SECRET_FIELDS)
        return self.model_dump(mode="json", exclude=exclude)

    def ensure_log_directory(self) -> None:
        """Ensure the log directory exists."""
        if self.log_file and self.log_file.parent:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.ensure_log_directory()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (mainly for testing)."""
    global _settings
    _settings = None
