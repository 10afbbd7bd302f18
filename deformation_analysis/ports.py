"""Ports (Protocol interfaces) for deformation analysis.

These define the contracts that infrastructure adapters must implement.
The domain layer depends on these abstractions, not concrete implementations.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Protocol, Tuple

from deformation_analysis.domain.model import (
    Bounds,
    ComparisonResult,
    MatcherKind,
    PointCloud,
)


# ---------------------------------------------------------------------------
# Neighbor Index Port
# ---------------------------------------------------------------------------


class NeighborIndex(Protocol):
    """Port: read-only spatial index over a target cloud.

    Safe to share between threads once built.
    """

    def query_nearest(self, *, points: Any, max_distance: float) -> Tuple[Any, Any]:
        """Return (target_indices, distances) for each query point.

        Unmatched points get index -1 and distance NaN.
        """
        ...


# ---------------------------------------------------------------------------
# Point Cloud Backend Port
# ---------------------------------------------------------------------------


class PointCloudBackend(Protocol):
    """Port: numeric backend.

    Isolates the domain from concrete libraries (NumPy/scikit-learn/matplotlib).
    """

    def to_array(self, *, cloud: PointCloud) -> Any:
        """Return the cloud's coordinates as an (N, 3) array."""
        ...

    def non_finite_indices(self, *, points: Any) -> Any:
        """Return indices of points with non-finite coordinates."""
        ...

    def compute_bounds(self, *, points: Any) -> Optional[Bounds]:
        """Axis-aligned bounds, or None for an empty cloud."""
        ...

    def build_index(self, *, kind: MatcherKind, target: Any, max_distance: float) -> NeighborIndex:
        """Build a neighbor index of the requested kind over the target points."""
        ...

    def normalize_ratios(self, *, distances: Any, max_distance: float) -> Any:
        """distance / max_distance in [0, 1]; unmatched and zero-basis map to 0."""
        ...

    def ratios_to_rgb(self, *, ratios: Any, low_hue: float, high_hue: float) -> Any:
        """Map severity ratios to an (N, 3) RGB array."""
        ...


# ---------------------------------------------------------------------------
# Point Cloud Source Port
# ---------------------------------------------------------------------------


class PointCloudSource(Protocol):
    """Port: load a capture into a PointCloud."""

    def load(self, *, path: Path) -> PointCloud:
        """Load the point cloud stored at path."""
        ...


# ---------------------------------------------------------------------------
# Repository Port
# ---------------------------------------------------------------------------


class ComparisonRepository(Protocol):
    """Port: persist comparison results."""

    def save(self, *, result: ComparisonResult, limit: Optional[int] = None) -> Path:
        """Save a result, keeping at most `limit` records; return where it went."""
        ...
