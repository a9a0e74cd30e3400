"""
Pipeline Configuration - Centralized Settings
==============================================

All configurable parameters in one place. Configuration is an explicit
object handed to the pipeline at construction time; environment variables
and config files are only read when asked to.

Usage:
    from vin_scan.config import PipelineConfig
    config = PipelineConfig.from_env()
    print(config.min_confidence)

Environment Variables:
    VIN_MAX_CORRECTION_EDITS=2
    VIN_MIN_CONFIDENCE=0.7
    VIN_MAX_ATTEMPTS=3
    VIN_AUTO_SCAN_INTERVAL_MS=2000
    VIN_ACCEPT_UNVERIFIED=false
    VIN_LOG_LEVEL=DEBUG

Author: VIN Scan Project
Date: January 2026
"""

import os
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, Mapping, Union

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _get_env_float(environ: Mapping[str, str], key: str, default: float) -> float:
    """Get float from environment variable."""
    value = environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid float for {key}: {value}, using default {default}")
    return default


def _get_env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    """Get int from environment variable."""
    value = environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid int for {key}: {value}, using default {default}")
    return default


def _get_env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    """Get bool from environment variable."""
    value = environ.get(key)
    if value is not None:
        return value.lower() in ('true', '1', 'yes', 'on')
    return default


def _get_env_str(environ: Mapping[str, str], key: str, default: str) -> str:
    """Get string from environment variable."""
    return environ.get(key, default)


@dataclass
class ExtractionConfig:
    """Candidate span extraction bounds."""

    # Wider than 17 so edge noise can be trimmed later
    min_span_length: int = 9
    max_span_length: int = 20

    # Join runs split by spaces/hyphens when the result could be a VIN
    join_split_runs: bool = True


@dataclass
class ScoringConfig:
    """Confidence scoring weights."""

    valid_base: float = 1.0
    unverified_base: float = 0.4

    # Barcodes carry less intrinsic noise than OCR
    barcode_bonus: float = 0.05

    # Penalty for the first edit; each further edit costs `edit_penalty_decay` times the previous
    edit_penalty: float = 0.12
    edit_penalty_decay: float = 0.5

    # Applied when several distinct valid corrections tie
    ambiguity_penalty: float = 0.25


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = 'INFO'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format: str = '%Y-%m-%d %H:%M:%S'

    # File logging (optional)
    log_file: Optional[str] = None


# camelCase keys accepted in config files
_ALIASES: Dict[str, str] = {
    'maxCorrectionEdits': 'max_correction_edits',
    'minConfidence': 'min_confidence',
    'maxAttemptsPerSession': 'max_attempts_per_session',
    'autoScanIntervalMs': 'auto_scan_interval_ms',
    'acceptUnverifiedChecksum': 'accept_unverified_checksum',
}


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""

    max_correction_edits: int = 2
    min_confidence: float = 0.7
    max_attempts_per_session: int = 3

    # Advisory: the caller throttles scans, the core never sleeps
    auto_scan_interval_ms: int = 2000

    # Return charset-valid candidates that never pass the checksum as LowConfidence
    accept_unverified_checksum: bool = False

    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> 'PipelineConfig':
        """
        Check value ranges.

        Raises:
            ConfigurationError: If any setting is out of range
        """
        if self.max_correction_edits < 0:
            raise ConfigurationError(
                f"max_correction_edits must be >= 0, got {self.max_correction_edits}",
                config_key='max_correction_edits',
                expected='>= 0',
            )
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ConfigurationError(
                f"min_confidence must be within [0, 1], got {self.min_confidence}",
                config_key='min_confidence',
                expected='[0, 1]',
            )
        if self.max_attempts_per_session < 1:
            raise ConfigurationError(
                f"max_attempts_per_session must be >= 1, got {self.max_attempts_per_session}",
                config_key='max_attempts_per_session',
                expected='>= 1',
            )
        if self.auto_scan_interval_ms < 0:
            raise ConfigurationError(
                f"auto_scan_interval_ms must be >= 0, got {self.auto_scan_interval_ms}",
                config_key='auto_scan_interval_ms',
                expected='>= 0',
            )
        extraction = self.extraction
        if not 1 <= extraction.min_span_length <= extraction.max_span_length:
            raise ConfigurationError(
                "extraction span bounds must satisfy 1 <= min_span_length <= max_span_length",
                config_key='extraction',
                expected='1 <= min <= max',
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: Union[str, Path]):
        """Save configuration to a JSON or YAML file (by extension)."""
        path = Path(path)
        with open(path, 'w') as f:
            if path.suffix.lower() in ('.yml', '.yaml'):
                yaml.dump(self.to_dict(), f, default_flow_style=False)
            else:
                json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PipelineConfig':
        """Build a configuration from a (possibly partial) mapping."""
        config = cls()

        for key, value in data.items():
            key = _ALIASES.get(key, key)
            if key == 'extraction':
                _update_section(config.extraction, value)
            elif key == 'scoring':
                _update_section(config.scoring, value)
            elif key == 'logging':
                _update_section(config.logging, value)
            elif hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Ignoring unknown config key: {key}")

        return config.validate()

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'PipelineConfig':
        """Load configuration from a JSON or YAML file."""
        path = Path(path)
        with open(path) as f:
            if path.suffix.lower() in ('.yml', '.yaml'):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file must contain a mapping: {path}",
                config_key=str(path),
                expected='mapping',
            )
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'PipelineConfig':
        """Build a configuration with VIN_* environment overrides applied."""
        env = os.environ if environ is None else environ
        defaults = cls()

        config = cls(
            max_correction_edits=_get_env_int(
                env, 'VIN_MAX_CORRECTION_EDITS', defaults.max_correction_edits),
            min_confidence=_get_env_float(
                env, 'VIN_MIN_CONFIDENCE', defaults.min_confidence),
            max_attempts_per_session=_get_env_int(
                env, 'VIN_MAX_ATTEMPTS', defaults.max_attempts_per_session),
            auto_scan_interval_ms=_get_env_int(
                env, 'VIN_AUTO_SCAN_INTERVAL_MS', defaults.auto_scan_interval_ms),
            accept_unverified_checksum=_get_env_bool(
                env, 'VIN_ACCEPT_UNVERIFIED', defaults.accept_unverified_checksum),
            logging=LoggingConfig(
                level=_get_env_str(env, 'VIN_LOG_LEVEL', defaults.logging.level),
                log_file=env.get('VIN_LOG_FILE'),
            ),
        )
        return config.validate()


def _update_section(section: Any, values: Optional[Mapping[str, Any]]):
    for key, value in (values or {}).items():
        if hasattr(section, key):
            setattr(section, key, value)
        else:
            logger.warning(f"Ignoring unknown config key: {type(section).__name__}.{key}")


def setup_logging(config: Optional[LoggingConfig] = None):
    """Configure logging based on settings."""
    config = config or LoggingConfig()
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=level,
        format=config.format,
        datefmt=config.date_format,
        handlers=handlers,
    )
