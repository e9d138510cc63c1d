"""Engine configuration with validation."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List


class ConfigurationError(Exception):
    """Raised when engine configuration is invalid."""
    pass


DEFAULT_PIPELINE_ORDER = (
    "code-block-formatting,html-to-markdown,markdown-formatting,list-formatting"
)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Engine settings with validation.

    Every value can be overridden with a ``DOCPATCH_``-prefixed environment
    variable or a ``.env`` file.
    """

    # Post-processing pipeline
    # Processor names in execution order. HTML conversion runs before the
    # markdown and list fixes so those see markdown, not tags.
    pipeline_order: str = Field(
        default=DEFAULT_PIPELINE_ORDER,
        description="Comma-separated processor names, in execution order"
    )
    disabled_processors: str = Field(
        default="",
        description="Comma-separated processor names to register but skip"
    )

    # File families
    markdown_extensions: str = Field(
        default="md,mdx,markdown",
        description="Extensions treated as markdown targets (comma-separated)"
    )
    html_extensions: str = Field(
        default="html,htm",
        description="Extensions treated as HTML targets (comma-separated)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    model_config = SettingsConfigDict(
        env_prefix="DOCPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def get_pipeline_order(self) -> List[str]:
        """Processor names in execution order."""
        return _split_csv(self.pipeline_order)

    def get_disabled_processors(self) -> List[str]:
        return _split_csv(self.disabled_processors)

    def get_markdown_extensions(self) -> List[str]:
        return [ext.lower().lstrip(".") for ext in _split_csv(self.markdown_extensions)]

    def get_html_extensions(self) -> List[str]:
        return [ext.lower().lstrip(".") for ext in _split_csv(self.html_extensions)]

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v_lower

    @field_validator('pipeline_order')
    @classmethod
    def validate_pipeline_order(cls, v: str) -> str:
        """Reject an empty order and duplicate processor names."""
        names = _split_csv(v)
        if not names:
            raise ValueError("pipeline_order must name at least one processor")
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"pipeline_order lists processors more than once: {duplicates}")
        return v


# Global settings instance
settings = Settings()
