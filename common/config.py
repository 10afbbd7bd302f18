import os
import yaml
from dataclasses import dataclass, replace, fields
from typing import Optional

from deformation_analysis.domain.model import ComparisonSettings
from exceptions.exceptions import ConfigurationError


def _read(path: str):
    with open(path, "r") as f:
        return yaml.safe_load(f)


@dataclass(frozen=True)
class Logging:
    level: str = "INFO"

@dataclass(frozen=True)
class Matching:
    max_search_distance: float = 1.0
    matcher: str = "auto"
    brute_force_max_pairs: int = 2_000_000
    max_points: int = 5_000_000
    chunk_size: int = 4096
    workers: int = 1
    timeout_s: Optional[float] = 10.0

@dataclass(frozen=True)
class Scoring:
    significance_threshold: float = 0.1
    threshold_mode: str = "absolute"

@dataclass(frozen=True)
class Output:
    json_out: Optional[str] = None
    record_limit: Optional[int] = None
    colored_cloud_out: Optional[str] = None

@dataclass(frozen=True)
class Synthetic:
    point_count: int = 2000
    seed: int = 0
    displacement: float = 0.3


@dataclass(frozen=True)
class Config:
    logging: Logging = Logging()
    matching: Matching = Matching()
    scoring: Scoring = Scoring()
    output: Output = Output()
    synthetic: Synthetic = Synthetic()

    def comparison_settings(self) -> ComparisonSettings:
        """Engine settings assembled from the matching and scoring sections."""
        return ComparisonSettings(
            max_search_distance=self.matching.max_search_distance,
            significance_threshold=self.scoring.significance_threshold,
            threshold_mode=self.scoring.threshold_mode,
            matcher=self.matching.matcher,
            brute_force_max_pairs=self.matching.brute_force_max_pairs,
            max_points=self.matching.max_points,
            chunk_size=self.matching.chunk_size,
            workers=self.matching.workers,
            timeout_s=self.matching.timeout_s,
        )


def _merge(section, data: dict, name: str):
    values = data.get(name, {}) or {}
    if not isinstance(values, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping", name)
    known = {f.name for f in fields(section)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in config section '{name}': {', '.join(unknown)}", name)
    return replace(section, **values)


def load_config(path: Optional[str]) -> Config:
    cfg = Config()
    if path and os.path.isfile(path):
        try:
            data = _read(path) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse config file: {e}", path) from e
        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping", path)
        cfg = replace(
            cfg,
            logging=_merge(cfg.logging, data, "logging"),
            matching=_merge(cfg.matching, data, "matching"),
            scoring=_merge(cfg.scoring, data, "scoring"),
            output=_merge(cfg.output, data, "output"),
            synthetic=_merge(cfg.synthetic, data, "synthetic"),
        )
    elif path:
        raise ConfigurationError("Config file not found", path)
    return cfg
