"""Low-level numeric utilities for point-cloud comparison."""
from deformation_analysis.infrastructure.backend._bounds import (
    compute_bounds,
    non_finite_rows,
)
from deformation_analysis.infrastructure.backend._color import (
    normalize_ratios,
    ratios_to_rgb,
    rgb_to_hue,
)
from deformation_analysis.infrastructure.backend._neighbors import (
    UNMATCHED,
    BruteForceIndex,
    GridIndex,
    KDTreeIndex,
    pairwise_distances,
)

__all__ = [
    "compute_bounds",
    "non_finite_rows",
    "normalize_ratios",
    "ratios_to_rgb",
    "rgb_to_hue",
    "UNMATCHED",
    "BruteForceIndex",
    "GridIndex",
    "KDTreeIndex",
    "pairwise_distances",
]
