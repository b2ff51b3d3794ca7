from dataclasses import dataclass, field, fields, asdict
from typing import List
import yaml
from pathlib import Path

from core.exceptions import ConfigurationError
from utils.image_utils import RESAMPLE_FILTERS

DECODERS = ('pillow', 'opencv')


@dataclass
class AnalysisConfig:
    """Configuration for decoding and quality scoring"""
    analysis_width: int = 320  # Downsample width used for every visual measure
    sharpness_stride: int = 4  # Sample every Nth pixel for edge energy
    batch_size: int = 5  # Records resident in memory at once
    n_workers: int = 5
    decoder: str = "pillow"  # Options: pillow, opencv
    max_image_pixels: int = 100_000_000  # 100MP limit


@dataclass
class ClassificationConfig:
    """Configuration for the keep/discard decision ladder"""
    screenshot_markers: List[str] = field(
        default_factory=lambda: ['screenshot', 'screen_recording']
    )
    screen_recording_marker: str = "screen"  # Videos only
    small_file_kb: int = 150
    min_aspect_ratio: float = 0.48
    max_aspect_ratio: float = 2.2
    blur_threshold: float = 2.5  # Raw sharpness

    @property
    def small_file_bytes(self) -> int:
        return self.small_file_kb * 1024


@dataclass
class DuplicateDetectionConfig:
    """Configuration for burst duplicate detection"""
    hash_threshold: int = 5  # Max differing dHash bits
    window_size: int = 50  # Look-ahead in timestamp order
    hash_resample: str = "bilinear"  # Filter used to build the 9x8 grid


@dataclass
class SystemConfig:
    """System-wide configuration"""
    log_level: str = "INFO"
    log_dir: str = "logs"
    structured_logs: bool = False

    # Decoding and scoring
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    # Classification heuristics
    classification: ClassificationConfig = field(
        default_factory=ClassificationConfig
    )

    # Duplicate detection
    duplicate_detection: DuplicateDetectionConfig = field(
        default_factory=DuplicateDetectionConfig
    )

    def validate(self) -> 'SystemConfig':
        """Raise ConfigurationError for values the engine cannot run with"""
        if self.analysis.analysis_width < 9:
            raise ConfigurationError("analysis_width must be at least 9 pixels")
        if self.analysis.sharpness_stride < 1:
            raise ConfigurationError("sharpness_stride must be positive")
        if self.analysis.batch_size < 1 or self.analysis.n_workers < 1:
            raise ConfigurationError("batch_size and n_workers must be positive")
        if self.analysis.decoder not in DECODERS:
            raise ConfigurationError(f"Unknown decoder: {self.analysis.decoder}")
        if self.classification.min_aspect_ratio >= self.classification.max_aspect_ratio:
            raise ConfigurationError("min_aspect_ratio must be below max_aspect_ratio")
        if not 0 <= self.duplicate_detection.hash_threshold <= 64:
            raise ConfigurationError("hash_threshold must be within [0, 64]")
        if self.duplicate_detection.window_size < 1:
            raise ConfigurationError("window_size must be positive")
        if self.duplicate_detection.hash_resample not in RESAMPLE_FILTERS:
            raise ConfigurationError(
                f"Unknown resample filter: {self.duplicate_detection.hash_resample}"
            )
        return self

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        with open(path, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: str = "config.yaml") -> 'SystemConfig':
        """Load configuration from YAML file"""
        if not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        config = cls()

        # Load system settings
        config.log_level = config_dict.get('log_level', config.log_level)
        config.log_dir = config_dict.get('log_dir', config.log_dir)
        config.structured_logs = config_dict.get('structured_logs', config.structured_logs)

        # Load sections
        if 'analysis' in config_dict:
            config.analysis = _load_section(AnalysisConfig, config_dict['analysis'])
        if 'classification' in config_dict:
            config.classification = _load_section(
                ClassificationConfig, config_dict['classification']
            )
        if 'duplicate_detection' in config_dict:
            config.duplicate_detection = _load_section(
                DuplicateDetectionConfig, config_dict['duplicate_detection']
            )

        return config.validate()


def _load_section(section_cls, values):
    """Build a config section, ignoring unknown keys"""
    if not isinstance(values, dict):
        raise ConfigurationError(f"Section {section_cls.__name__} must be a mapping")
    known = {f.name for f in fields(section_cls)}
    return section_cls(**{k: v for k, v in values.items() if k in known})
