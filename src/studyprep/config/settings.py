"""Pydantic settings models for studyprep configuration.

Each settings class reads its own file under config/ and can be overridden
per field from the environment. Sources, strongest first:

    1. Init keyword arguments (e.g., tests and CLI overrides)
    2. Environment variables (with prefix, e.g., EXTRACTION_MAX_CHUNK_TOKENS)
    3. .env file
    4. YAML config file (e.g., config/extraction.yaml)
    5. Default values defined here

File locations are anchored at PROJECT_ROOT, not the current directory.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Resolve project root: settings.py -> config/ -> studyprep/ -> src/ -> repo root
PROJECT_ROOT = Path(__file__).resolve().parents[3]

_CONFIG_DIR = PROJECT_ROOT / "config"
_ENV_FILE = PROJECT_ROOT / ".env"


class _YamlSettings(BaseSettings):
    """Base class wiring the YAML file in below env vars and .env."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


class ExtractionSettings(_YamlSettings):
    """PDF extraction: input limits, OCR fallback, chunking budget."""

    # Input validation
    max_file_size_mb: int = Field(default=50, gt=0)

    # Digital vs. scanned page decision
    min_digital_chars: int = Field(default=50, ge=0)

    # OCR rendering and preprocessing
    render_scale: float = Field(default=2.0, gt=0)
    contrast: float = Field(default=1.5, gt=-255, lt=259)
    ocr_language: str = "eng"
    tesseract_cmd: str = "tesseract"

    # Chunking and topics
    max_chunk_tokens: int = Field(default=2000, gt=0)
    max_topics: int = Field(default=30, ge=0)

    # Caller-level retry for transient processing failures
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_backoff_min: float = 1.0
    retry_backoff_max: float = 8.0

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "extraction.yaml"),
        env_file=str(_ENV_FILE),
        env_prefix="EXTRACTION_",
        extra="ignore",
    )

    @property
    def max_file_size_bytes(self) -> int:
        """Upper bound on accepted PDF size, in bytes."""
        return self.max_file_size_mb * 1024 * 1024


class GenerationSettings(_YamlSettings):
    """Text-generation collaborator: retry policy and prompt budget."""

    max_attempts: int = Field(default=4, ge=1)
    backoff_min: float = 1.0
    backoff_max: float = 30.0
    max_prompt_tokens: int = Field(default=8000, gt=0)

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "generation.yaml"),
        env_file=str(_ENV_FILE),
        env_prefix="GENERATION_",
        extra="ignore",
    )


class PipelineSettings(_YamlSettings):
    """Pipeline operations: paths and logging."""

    output_dir: str = "data/extracted"
    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10MB
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "pipeline.yaml"),
        env_prefix="PIPELINE_",
        extra="ignore",
    )
