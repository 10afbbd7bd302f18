from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from exceptions.exceptions import ConfigurationError


@dataclass(frozen=True)
class Point:
    """A single 3-D sample. `intensity` and `classification` are passthrough attributes."""

    x: float
    y: float
    z: float
    intensity: Optional[int] = None
    classification: Optional[int] = None


@dataclass(frozen=True)
class PointCloud:
    """Named, ordered capture. Point order only defines each point's index."""

    name: str
    points: Tuple[Point, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but store an immutable tuple
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0


@dataclass(frozen=True)
class Bounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float

    @property
    def diagonal(self) -> float:
        return math.sqrt(
            (self.max_x - self.min_x) ** 2
            + (self.max_y - self.min_y) ** 2
            + (self.max_z - self.min_z) ** 2
        )

    def contains(self, point: Point) -> bool:
        return (
            self.min_x <= point.x <= self.max_x
            and self.min_y <= point.y <= self.max_y
            and self.min_z <= point.z <= self.max_z
        )


@dataclass(frozen=True)
class NeighborMatch:
    """Matcher output for one source point; `target_index` is None when unmatched."""

    source_index: int
    target_index: Optional[int]
    distance: Optional[float]

    @property
    def matched(self) -> bool:
        return self.target_index is not None


@dataclass(frozen=True)
class DeformationRecord:
    source_index: int
    source_point: Point
    matched_point: Optional[Point]
    distance: Optional[float]
    is_significant: bool = False

    @property
    def matched(self) -> bool:
        return self.matched_point is not None


@dataclass(frozen=True)
class DeformationStatistics:
    max_distance: float = 0.0
    mean_distance: float = 0.0
    significant_count: int = 0
    matched_count: int = 0
    total_count: int = 0
    processing_time_ms: float = 0.0


@dataclass(frozen=True)
class ColorSample:
    r: float
    g: float
    b: float


class MatcherKind(str, Enum):
    AUTO = "auto"
    BRUTE_FORCE = "brute_force"
    KDTREE = "kdtree"
    GRID = "grid"


class ThresholdMode(str, Enum):
    ABSOLUTE = "absolute"
    # Fraction of the reference cloud's bounding-box diagonal
    BBOX_RELATIVE = "bbox_relative"


@dataclass(frozen=True)
class ComparisonSettings:
    """Engine parameters. Validated eagerly by `validate()`."""

    max_search_distance: float = 1.0
    significance_threshold: float = 0.1
    threshold_mode: ThresholdMode = ThresholdMode.ABSOLUTE
    matcher: MatcherKind = MatcherKind.AUTO
    brute_force_max_pairs: int = 2_000_000
    max_points: int = 5_000_000
    chunk_size: int = 4096
    workers: int = 1
    timeout_s: Optional[float] = 10.0

    def __post_init__(self) -> None:
        # Config files and CLI flags hand over plain strings
        try:
            object.__setattr__(self, "threshold_mode", ThresholdMode(self.threshold_mode))
            object.__setattr__(self, "matcher", MatcherKind(self.matcher))
        except ValueError as e:
            raise ConfigurationError(str(e), context="settings") from e

    def validate(self) -> "ComparisonSettings":
        """Return self if every parameter is usable, else raise ConfigurationError."""
        if not _is_finite_number(self.max_search_distance) or self.max_search_distance <= 0:
            raise ConfigurationError(
                f"max_search_distance must be a positive finite number, got {self.max_search_distance!r}",
                context="max_search_distance",
            )
        if not _is_finite_number(self.significance_threshold) or self.significance_threshold < 0:
            raise ConfigurationError(
                f"significance_threshold must be a non-negative finite number, got {self.significance_threshold!r}",
                context="significance_threshold",
            )
        for name in ("brute_force_max_pairs", "max_points", "chunk_size", "workers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value!r}", context=name
                )
        if self.timeout_s is not None and (
            not _is_finite_number(self.timeout_s) or self.timeout_s <= 0
        ):
            raise ConfigurationError(
                f"timeout_s must be positive or None, got {self.timeout_s!r}",
                context="timeout_s",
            )
        return self

    def effective_threshold(self, reference_bounds: Optional[Bounds]) -> float:
        """Absolute significance threshold for the configured mode."""
        if self.threshold_mode == ThresholdMode.BBOX_RELATIVE:
            if reference_bounds is None:
                return 0.0
            return self.significance_threshold * reference_bounds.diagonal
        return float(self.significance_threshold)


@dataclass(frozen=True)
class ComparisonResult:
    """Engine output. `colors[i]` and `records[i]` both refer to source index i."""

    bounds1: Optional[Bounds]
    bounds2: Optional[Bounds]
    records: Tuple[DeformationRecord, ...]
    statistics: DeformationStatistics
    colors: Tuple[ColorSample, ...] = field(default_factory=tuple)
    matcher: MatcherKind = MatcherKind.BRUTE_FORCE
    significance_threshold: float = 0.0
    reference_name: str = ""
    comparison_name: str = ""


def _is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
