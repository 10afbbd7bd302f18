"""Infrastructure adapter implementing the PointCloudBackend port."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from deformation_analysis.domain.model import Bounds, MatcherKind, Point, PointCloud
from deformation_analysis.ports import NeighborIndex, PointCloudBackend


@dataclass(frozen=True)
class NumpyBackend(PointCloudBackend):
    """Concrete PointCloudBackend using the backend utilities."""

    kdtree_leaf_size: int = 40

    # -------------------------------------------------------------------------
    # Conversion / Validation
    # -------------------------------------------------------------------------

    def to_array(self, *, cloud: PointCloud) -> Any:
        if cloud.is_empty:
            return np.empty((0, 3), dtype=np.float64)
        return np.array([(p.x, p.y, p.z) for p in cloud.points], dtype=np.float64)

    def non_finite_indices(self, *, points: Any) -> Any:
        from deformation_analysis.infrastructure.backend import non_finite_rows

        return non_finite_rows(points)

    def compute_bounds(self, *, points: Any) -> Optional[Bounds]:
        from deformation_analysis.infrastructure.backend import compute_bounds

        raw = compute_bounds(points)
        if raw is None:
            return None
        return Bounds(*raw)

    # -------------------------------------------------------------------------
    # Neighbor Search
    # -------------------------------------------------------------------------

    def build_index(self, *, kind: MatcherKind, target: Any, max_distance: float) -> NeighborIndex:
        from deformation_analysis.infrastructure.backend import (
            BruteForceIndex,
            GridIndex,
            KDTreeIndex,
        )

        if kind == MatcherKind.BRUTE_FORCE:
            return BruteForceIndex(target)
        if kind == MatcherKind.KDTREE:
            return KDTreeIndex(target, leaf_size=self.kdtree_leaf_size)
        if kind == MatcherKind.GRID:
            return GridIndex(target, cell_size=max_distance)
        raise ValueError(f"No concrete index for matcher kind {kind!r}")

    # -------------------------------------------------------------------------
    # Color
    # -------------------------------------------------------------------------

    def normalize_ratios(self, *, distances: Any, max_distance: float) -> Any:
        from deformation_analysis.infrastructure.backend import normalize_ratios

        return normalize_ratios(distances, max_distance)

    def ratios_to_rgb(self, *, ratios: Any, low_hue: float, high_hue: float) -> Any:
        from deformation_analysis.infrastructure.backend import ratios_to_rgb

        return ratios_to_rgb(ratios, low_hue=low_hue, high_hue=high_hue)


def cloud_from_arrays(
    name: str,
    xyz: Any,
    intensity: Optional[Sequence[int]] = None,
    classification: Optional[Sequence[int]] = None,
) -> PointCloud:
    """Build a PointCloud from an (N, 3) array and optional per-point attributes."""
    pts = np.asarray(xyz, dtype=np.float64).reshape(-1, 3)
    n = pts.shape[0]
    if intensity is not None and len(intensity) != n:
        raise ValueError("intensity must have one value per point")
    if classification is not None and len(classification) != n:
        raise ValueError("classification must have one value per point")

    points = tuple(
        Point(
            x=float(pts[i, 0]),
            y=float(pts[i, 1]),
            z=float(pts[i, 2]),
            intensity=None if intensity is None else int(intensity[i]),
            classification=None if classification is None else int(classification[i]),
        )
        for i in range(n)
    )
    return PointCloud(name=name, points=points)
