"""
Configuration management for arc schematization.

Loads YAML configuration with defaults for the Fréchet distance, candidate
generation, run limits, tracing and diagnostics.
"""

import math
import os
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import yaml


@dataclass
class FrechetConfig:
    """Configuration for the Fréchet distance function."""
    distance: str = "euclidean-approx"  # "euclidean-approx", "l1" or "linf"
    eps: float = 1.01


@dataclass
class SchematizationConfig:
    """Configuration for candidate generation and topology checks."""
    angle_steps: int = 41
    num_candidates: int = 3
    max_cross_dist_frac: float = 0.0075  # fraction of the bounding-box diagonal
    straight_reduction: float = 1.0
    allow_high_degree: bool = True


@dataclass
class RunConfig:
    """Configuration for stopping the step loop."""
    max_complexity: int = 0
    max_cost: float = math.inf
    max_steps: Optional[int] = None


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class DiagnosticsConfig:
    """Configuration for geometry diagnostics."""
    enabled: bool = False
    region: Optional[List[float]] = None  # [x, y, radius]
    max_records: int = 500


@dataclass
class PipelineConfig:
    """Complete configuration."""
    frechet: FrechetConfig = field(default_factory=FrechetConfig)
    schematization: SchematizationConfig = field(default_factory=SchematizationConfig)
    run: RunConfig = field(default_factory=RunConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)


SECTIONS = ("frechet", "schematization", "run", "tracing", "diagnostics")


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = PipelineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section in SECTIONS:
        values = yaml_data.get(section)
        if not values:
            continue
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    config = PipelineConfig()
    yaml_data = {section: asdict(getattr(config, section)) for section in SECTIONS}

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
