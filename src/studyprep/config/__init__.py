"""Configuration package -- typed, validated settings from YAML + .env."""

from .settings import ExtractionSettings, GenerationSettings, PipelineSettings

__all__ = [
    "ExtractionSettings",
    "GenerationSettings",
    "PipelineSettings",
    "load_all_settings",
]


def load_all_settings() -> tuple[ExtractionSettings, GenerationSettings, PipelineSettings]:
    """Load and return all configuration objects.

    Returns a tuple of (ExtractionSettings, GenerationSettings, PipelineSettings),
    each populated from its own YAML file with environment variable overrides.
    """
    return ExtractionSettings(), GenerationSettings(), PipelineSettings()
