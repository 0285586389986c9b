"""
Configuration Module

Settings for the converter, loadable from a JSON settings file and
overridable from the environment.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, List, Any, Union
from dataclasses import dataclass, field, fields

from .models import DEFAULT_TIMEOUT_MS

logger = logging.getLogger(__name__)

ENV_ENGINE_PATH = 'OFFICE2PDF_ENGINE_PATH'
ENV_TIMEOUT_MS = 'OFFICE2PDF_TIMEOUT_MS'


@dataclass
class ConverterConfig:
    """Configuration for the conversion pipeline"""
    # External engine
    engine_path: Optional[str] = None  # Tried before the per-OS candidates
    probe_timeout_seconds: float = 5.0
    settle_delay_seconds: float = 0.5  # How long to wait for the engine's output file
    candidate_paths: Dict[str, List[str]] = field(default_factory=dict)  # Per-OS overrides

    # Conversion
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS

    # Container parsing
    max_part_bytes: int = 50 * 1024 * 1024

    # Placeholder output
    embed_original_in_placeholder: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConverterConfig':
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key in known:
                values[key] = value
            else:
                logger.warning(f"Ignoring unknown setting: {key}")
        return cls(**values)

    def apply_environment(self, environ: Optional[Dict[str, str]] = None) -> 'ConverterConfig':
        """Override settings from OFFICE2PDF_* environment variables."""
        environ = os.environ if environ is None else environ

        engine_path = environ.get(ENV_ENGINE_PATH)
        if engine_path:
            self.engine_path = engine_path

        timeout = environ.get(ENV_TIMEOUT_MS)
        if timeout:
            try:
                self.default_timeout_ms = int(timeout)
            except ValueError:
                logger.warning(f"Invalid {ENV_TIMEOUT_MS} value: {timeout!r}")

        return self


def load_config(path: Optional[Union[str, Path]] = None) -> ConverterConfig:
    """
    Load configuration.

    Args:
        path: Optional JSON settings file

    Returns:
        ConverterConfig with file values and environment overrides applied
    """
    data: Dict[str, Any] = {}
    if path:
        settings_path = Path(path)
        with open(settings_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {settings_path}")
        logger.info(f"Loaded settings from {settings_path}")

    return ConverterConfig.from_dict(data).apply_environment()
