"""
Configuration management for the filing pipeline.

Supports:
- Loading settings from YAML
- Dotted-key overrides (``{"retry.max_retries": 5}``) merged on top
- Config validation with Pydantic
- Config hashing for reproducibility
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field

from .extract.response_parser import ParseOptions
from .parse.context_window import ChunkStrategy
from .parse.models import PDFExtractorOptions
from .recovery.retry import RetryOptions
from .recovery.simplification import SimplificationStrategy

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Config Models
# =============================================================================


class ContextOverrides(BaseModel):
    """Overrides applied on top of the per-filing-type context window profile."""

    max_chunk_size: Optional[int] = None
    overlap_size: Optional[int] = None
    use_semantic_chunking: Optional[bool] = None
    chunk_strategy: Optional[ChunkStrategy] = None

    def as_overrides(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class MonitorConfig(BaseModel):
    """Parser monitoring settings."""

    enabled: bool = True
    max_recent_operations: int = 100
    max_stored_metrics: int = 1000


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    extractor: PDFExtractorOptions = Field(default_factory=PDFExtractorOptions)
    context: ContextOverrides = Field(default_factory=ContextOverrides)
    retry: RetryOptions = Field(default_factory=RetryOptions)
    parse: ParseOptions = Field(default_factory=ParseOptions)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    # Degradations applied when the primary extraction fails
    fallback_strategies: list[SimplificationStrategy] = Field(
        default_factory=lambda: [SimplificationStrategy.BASIC_TEXT]
    )

    def to_serializable(self) -> dict[str, Any]:
        """JSON-compatible dict (callbacks dropped, sets sorted)."""
        data = self.model_dump(mode="json", exclude={"retry": {"on_retry"}})
        data["retry"]["retryable_categories"] = sorted(data["retry"]["retryable_categories"])
        return data

    def config_hash(self) -> str:
        """
        Generate hash of config for reproducibility tracking.

        Returns:
            SHA256 hash of serialized config (first 12 chars)
        """
        config_json = json.dumps(self.to_serializable(), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:12]


# =============================================================================
# Config Loading Functions
# =============================================================================


def load_yaml(path: Union[str, Path]) -> dict[str, Any]:
    """Load YAML file and return as dict."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def expand_dotted_keys(overrides: dict[str, Any]) -> dict[str, Any]:
    """Turn ``{"retry.max_retries": 5}`` into ``{"retry": {"max_retries": 5}}``."""
    expanded: dict[str, Any] = {}
    for key, value in overrides.items():
        if isinstance(value, dict):
            value = expand_dotted_keys(value)
        parts = key.split(".")
        nested: dict[str, Any] = value
        for part in reversed(parts[1:]):
            nested = {part: nested}
        expanded = deep_merge(expanded, {parts[0]: nested})
    return expanded


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> PipelineConfig:
    """
    Load pipeline configuration.

    Args:
        config_path: YAML file; None starts from defaults
        overrides: Extra settings (dotted or nested keys) merged on top

    Returns:
        PipelineConfig with all settings resolved

    Raises:
        FileNotFoundError: config_path does not exist
        pydantic.ValidationError: settings do not match the models
    """
    config_dict = load_yaml(config_path) if config_path is not None else {}

    if overrides:
        config_dict = deep_merge(config_dict, expand_dotted_keys(overrides))

    config = PipelineConfig.model_validate(config_dict)

    logger.info(f"Loaded config: {config_path or 'defaults'} (hash: {config.config_hash()})")

    return config


def save_config(config: PipelineConfig, output_path: Union[str, Path]) -> Path:
    """Save resolved config to a YAML file and return its path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_serializable(), f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved config to {output_path}")
    return output_path


# =============================================================================
# Config Validation
# =============================================================================


def validate_config(config: PipelineConfig) -> list[str]:
    """
    Validate config and return list of warnings/issues.

    Args:
        config: PipelineConfig to validate

    Returns:
        List of warning messages (empty if all good)
    """
    warnings = []

    context = config.context
    if context.max_chunk_size is not None and context.overlap_size is not None:
        if context.overlap_size >= context.max_chunk_size:
            warnings.append(
                f"overlap_size={context.overlap_size} must be smaller than "
                f"max_chunk_size={context.max_chunk_size}"
            )

    if config.retry.initial_delay > config.retry.max_delay:
        warnings.append(
            f"retry.initial_delay={config.retry.initial_delay} exceeds "
            f"retry.max_delay={config.retry.max_delay}"
        )

    if config.retry.max_elapsed is None and config.retry.max_retries > 5:
        warnings.append(
            f"retry.max_retries={config.retry.max_retries} with no max_elapsed bound "
            "may stall a filing for a long time"
        )

    if config.parse.max_attempts == 0 and not config.parse.allow_partial:
        warnings.append("Repair and partial extraction are both disabled; messy replies will fail")

    if config.extractor.max_section_length < 1000:
        warnings.append(
            f"extractor.max_section_length={config.extractor.max_section_length} is very low, "
            "sections will be heavily truncated"
        )

    if not config.fallback_strategies:
        warnings.append("No fallback strategies configured; extraction failures will not degrade")

    return warnings
