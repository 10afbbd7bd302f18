"""Domain layer: entities, value objects and domain services for deformation analysis."""

from .model import (
    Point,
    PointCloud,
    Bounds,
    NeighborMatch,
    DeformationRecord,
    DeformationStatistics,
    ColorSample,
    MatcherKind,
    ThresholdMode,
    ComparisonSettings,
    ComparisonResult,
)
from .services import (
    NearestNeighborMatcher,
    DeformationScorer,
    ColorMapper,
    DeformationStatisticsAggregator,
    DeformationAnalysisService,
    matches_from_arrays,
)
from .strategies import (
    BruteForceMatcher,
    KDTreeMatcher,
    GridMatcher,
    select_matcher,
    ThresholdDeformationScorer,
    HueGradientColorMapper,
)

__all__ = [
    # Value Objects
    "Point",
    "PointCloud",
    "Bounds",
    "NeighborMatch",
    "DeformationRecord",
    "DeformationStatistics",
    "ColorSample",
    "MatcherKind",
    "ThresholdMode",
    "ComparisonSettings",
    "ComparisonResult",
    # Domain Services
    "NearestNeighborMatcher",
    "DeformationScorer",
    "ColorMapper",
    "DeformationStatisticsAggregator",
    "DeformationAnalysisService",
    "matches_from_arrays",
    # Default strategy implementations (domain, backed by ports)
    "BruteForceMatcher",
    "KDTreeMatcher",
    "GridMatcher",
    "select_matcher",
    "ThresholdDeformationScorer",
    "HueGradientColorMapper",
]
