"""Domain-level strategy implementations that depend only on ports.

These implementations contain matching/scoring/color policy, but delegate all
library-specific details (NumPy/scikit-learn/matplotlib) to the
`PointCloudBackend` port.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence, Tuple

from deformation_analysis.domain.model import (
    ColorSample,
    ComparisonSettings,
    DeformationRecord,
    MatcherKind,
    NeighborMatch,
    PointCloud,
)
from deformation_analysis.domain.services import (
    ColorMapper,
    DeformationScorer,
    NearestNeighborMatcher,
    matches_from_arrays,
)
from exceptions.exceptions import ResourceExhaustedError

if TYPE_CHECKING:
    from deformation_analysis.ports import NeighborIndex, PointCloudBackend


# ---------------------------------------------------------------------------
# Matcher Strategies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _BackendMatcher(NearestNeighborMatcher):
    backend: PointCloudBackend
    kind: MatcherKind = MatcherKind.BRUTE_FORCE

    def build_index(self, *, target: Any, max_distance: float) -> NeighborIndex:
        return self.backend.build_index(kind=self.kind, target=target, max_distance=max_distance)

    def match(self, *, source: PointCloud, target: PointCloud, max_distance: float) -> Tuple[NeighborMatch, ...]:
        """Single-shot matching of two clouds, outside any engine.

        Every source point is queried in one pass with no chunking, worker pool
        or deadline. `DeformationAnalysisService` builds the index itself and
        queries it in chunks instead.
        """
        index = self.build_index(target=self.backend.to_array(cloud=target), max_distance=max_distance)
        indices, distances = index.query_nearest(
            points=self.backend.to_array(cloud=source), max_distance=max_distance
        )
        return matches_from_arrays(indices, distances)


@dataclass(frozen=True)
class BruteForceMatcher(_BackendMatcher):
    """Scan every target point for every source point. Small clouds only."""

    kind: MatcherKind = MatcherKind.BRUTE_FORCE


@dataclass(frozen=True)
class KDTreeMatcher(_BackendMatcher):
    """Radius query against a k-d tree built once over the target."""

    kind: MatcherKind = MatcherKind.KDTREE


@dataclass(frozen=True)
class GridMatcher(_BackendMatcher):
    """Radius query against a uniform grid with cell edge == max search distance."""

    kind: MatcherKind = MatcherKind.GRID


_MATCHERS = {
    MatcherKind.BRUTE_FORCE: BruteForceMatcher,
    MatcherKind.KDTREE: KDTreeMatcher,
    MatcherKind.GRID: GridMatcher,
}


def select_matcher(
    *,
    backend: PointCloudBackend,
    settings: ComparisonSettings,
    source_count: int,
    target_count: int,
) -> NearestNeighborMatcher:
    """Pick the matcher for a comparison.

    AUTO uses brute force while source_count * target_count stays within
    `brute_force_max_pairs` and the k-d tree beyond it. Forcing brute force
    above that ceiling raises ResourceExhaustedError.
    """
    pairs = source_count * target_count
    kind = settings.matcher
    if kind == MatcherKind.AUTO:
        kind = MatcherKind.BRUTE_FORCE if pairs <= settings.brute_force_max_pairs else MatcherKind.KDTREE
    elif kind == MatcherKind.BRUTE_FORCE and pairs > settings.brute_force_max_pairs:
        raise ResourceExhaustedError(
            f"Brute-force matching of {source_count} x {target_count} points exceeds "
            f"the ceiling of {settings.brute_force_max_pairs} pairs; use a spatial index",
            context="select_matcher",
        )
    return _MATCHERS[kind](backend=backend)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThresholdDeformationScorer(DeformationScorer):
    """Flag matched points whose distance is strictly above `threshold`."""

    threshold: float = 0.1

    def score(
        self,
        *,
        source: PointCloud,
        target: PointCloud,
        matches: Sequence[NeighborMatch],
    ) -> Tuple[DeformationRecord, ...]:
        records = []
        for m in matches:
            if m.matched:
                records.append(
                    DeformationRecord(
                        source_index=m.source_index,
                        source_point=source.points[m.source_index],
                        matched_point=target.points[m.target_index],
                        distance=m.distance,
                        is_significant=m.distance > self.threshold,
                    )
                )
            else:
                records.append(
                    DeformationRecord(
                        source_index=m.source_index,
                        source_point=source.points[m.source_index],
                        matched_point=None,
                        distance=None,
                        is_significant=False,
                    )
                )
        return tuple(records)


# ---------------------------------------------------------------------------
# Color Mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HueGradientColorMapper(ColorMapper):
    """Linear hue sweep at full saturation, lightness 0.5 (blue -> red by default)."""

    backend: PointCloudBackend
    low_hue: float = 0.7
    high_hue: float = 0.0

    def map_ratio(self, ratio: float) -> ColorSample:
        if not math.isfinite(ratio):
            ratio = 0.0
        rgb = self.backend.ratios_to_rgb(
            ratios=[min(max(ratio, 0.0), 1.0)], low_hue=self.low_hue, high_hue=self.high_hue
        )
        r, g, b = rgb[0]
        return ColorSample(r=float(r), g=float(g), b=float(b))

    def colors_array(self, records: Sequence[DeformationRecord], max_observed_distance: float) -> Any:
        """(N, 3) RGB aligned with `records`; unmatched records get the low end."""
        distances = [r.distance if r.matched else float("nan") for r in records]
        ratios = self.backend.normalize_ratios(distances=distances, max_distance=max_observed_distance)
        return self.backend.ratios_to_rgb(ratios=ratios, low_hue=self.low_hue, high_hue=self.high_hue)

    def map_records(
        self,
        records: Sequence[DeformationRecord],
        max_observed_distance: float,
    ) -> Tuple[ColorSample, ...]:
        rgb = self.colors_array(records, max_observed_distance)
        return tuple(ColorSample(r=float(c[0]), g=float(c[1]), b=float(c[2])) for c in rgb)
