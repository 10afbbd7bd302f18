"""Domain services (and strategy protocols) for deformation analysis."""
from __future__ import annotations

import math
import numbers
import time
from concurrent.futures import Executor, wait
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Protocol, Sequence, Tuple

from .model import (
    ColorSample,
    ComparisonResult,
    ComparisonSettings,
    DeformationRecord,
    DeformationStatistics,
    MatcherKind,
    NeighborMatch,
    Point,
    PointCloud,
)
from exceptions.exceptions import (
    ComparisonTimeoutError,
    InvalidInputError,
    ResourceExhaustedError,
)

if TYPE_CHECKING:
    from deformation_analysis.ports import NeighborIndex, PointCloudBackend


# ---------------------------------------------------------------------------
# Strategy Protocols
# ---------------------------------------------------------------------------


class NearestNeighborMatcher(Protocol):
    """Strategy port: build a radius-bounded nearest-neighbor index over a target."""

    kind: MatcherKind

    def build_index(self, *, target: Any, max_distance: float) -> NeighborIndex: ...


class DeformationScorer(Protocol):
    """Strategy port: turn matches into deformation records."""

    def score(
        self,
        *,
        source: PointCloud,
        target: PointCloud,
        matches: Sequence[NeighborMatch],
    ) -> Tuple[DeformationRecord, ...]: ...


class ColorMapper(Protocol):
    """Strategy port: severity ratio -> display color."""

    def map_ratio(self, ratio: float) -> ColorSample: ...

    def map_records(
        self,
        records: Sequence[DeformationRecord],
        max_observed_distance: float,
    ) -> Tuple[ColorSample, ...]: ...


MatcherSelector = Callable[..., NearestNeighborMatcher]
ScorerFactory = Callable[..., DeformationScorer]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def matches_from_arrays(indices: Any, distances: Any, offset: int = 0) -> Tuple[NeighborMatch, ...]:
    """Convert index/distance arrays (index < 0 == unmatched) to NeighborMatch values."""
    out = []
    for i, (j, d) in enumerate(zip(indices, distances)):
        j = int(j)
        if j < 0:
            out.append(NeighborMatch(source_index=offset + i, target_index=None, distance=None))
        else:
            out.append(NeighborMatch(source_index=offset + i, target_index=j, distance=float(d)))
    return tuple(out)


def _check_coordinate(value: Any, name: str, index: int, cloud: PointCloud) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidInputError(
            f"Point {index} of '{cloud.name}' has {name}={value!r}; expected a real number",
            context=cloud.name,
        )


def _check_attribute(value: Optional[int], name: str, index: int, cloud: PointCloud) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or not 0 <= value <= 255:
        raise InvalidInputError(
            f"Point {index} of '{cloud.name}' has {name}={value!r}; expected an integer in 0-255",
            context=cloud.name,
        )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class DeformationStatisticsAggregator:
    """Reduce records to summary metrics over matched records only.

    Never raises on an empty matched set: max and mean fall back to 0.
    """

    def aggregate(
        self,
        records: Sequence[DeformationRecord],
        *,
        processing_time_ms: float = 0.0,
    ) -> DeformationStatistics:
        distances = [r.distance for r in records if r.matched]
        significant = sum(1 for r in records if r.matched and r.is_significant)
        if not distances:
            return DeformationStatistics(
                max_distance=0.0,
                mean_distance=0.0,
                significant_count=0,
                matched_count=0,
                total_count=len(records),
                processing_time_ms=float(processing_time_ms),
            )
        return DeformationStatistics(
            max_distance=float(max(distances)),
            mean_distance=math.fsum(distances) / len(distances),
            significant_count=significant,
            matched_count=len(distances),
            total_count=len(records),
            processing_time_ms=float(processing_time_ms),
        )


# ---------------------------------------------------------------------------
# Orchestration Service
# ---------------------------------------------------------------------------


class DeformationAnalysisService:
    """Domain service: compare a reference cloud against a comparison cloud.

    Steps: validate -> bounds -> match (chunked, optionally on a worker pool)
    -> score -> aggregate -> colorize. The whole run is aborted with
    ComparisonTimeoutError once `settings.timeout_s` has elapsed.
    """

    def __init__(
        self,
        *,
        backend: PointCloudBackend,
        settings: ComparisonSettings,
        matcher_selector: MatcherSelector,
        scorer_factory: ScorerFactory,
        aggregator: DeformationStatisticsAggregator,
        color_mapper: ColorMapper,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._backend = backend
        self._settings = settings.validate()
        self._matcher_selector = matcher_selector
        self._scorer_factory = scorer_factory
        self._aggregator = aggregator
        self._color_mapper = color_mapper
        self._executor = executor
        self._clock = clock

    @property
    def settings(self) -> ComparisonSettings:
        return self._settings

    def compare(self, reference: PointCloud, comparison: PointCloud) -> ComparisonResult:
        """Match `reference` against `comparison` and return records, statistics and colors."""
        settings = self._settings

        # Step 1: Validate before any matching work
        self._validate_cloud(reference)
        self._validate_cloud(comparison)
        source = self._backend.to_array(cloud=reference)
        target = self._backend.to_array(cloud=comparison)
        self._reject_non_finite(source, reference)
        self._reject_non_finite(target, comparison)

        # Step 2: Bounds (independent per cloud)
        bounds1 = self._backend.compute_bounds(points=source)
        bounds2 = self._backend.compute_bounds(points=target)
        threshold = settings.effective_threshold(bounds1)

        matcher = self._matcher_selector(
            settings=settings,
            source_count=len(reference),
            target_count=len(comparison),
        )

        # Step 3: Matching
        start = self._clock()
        deadline = None if settings.timeout_s is None else start + settings.timeout_s
        index = matcher.build_index(target=target, max_distance=settings.max_search_distance)
        self._check_deadline(deadline, "build_index")
        matches = self._query(index, source, deadline)

        # Step 4: Scoring
        scorer = self._scorer_factory(threshold=threshold)
        records = scorer.score(source=reference, target=comparison, matches=matches)
        elapsed_ms = (self._clock() - start) * 1000.0
        self._check_deadline(deadline, "score")

        # Step 5: Statistics and colors
        statistics = self._aggregator.aggregate(records, processing_time_ms=elapsed_ms)
        colors = self._color_mapper.map_records(records, statistics.max_distance)

        return ComparisonResult(
            bounds1=bounds1,
            bounds2=bounds2,
            records=records,
            statistics=statistics,
            colors=colors,
            matcher=matcher.kind,
            significance_threshold=threshold,
            reference_name=reference.name,
            comparison_name=comparison.name,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _validate_cloud(self, cloud: PointCloud) -> None:
        if not isinstance(cloud, PointCloud):
            raise InvalidInputError(
                f"Expected a PointCloud, got {type(cloud).__name__}", context="compare"
            )
        if len(cloud) > self._settings.max_points:
            raise ResourceExhaustedError(
                f"'{cloud.name}' has {len(cloud)} points; the limit is {self._settings.max_points}",
                context=cloud.name,
            )
        for i, p in enumerate(cloud.points):
            if not isinstance(p, Point):
                raise InvalidInputError(
                    f"Point {i} of '{cloud.name}' is a {type(p).__name__}, not a Point",
                    context=cloud.name,
                )
            for axis in ("x", "y", "z"):
                _check_coordinate(getattr(p, axis), axis, i, cloud)
            _check_attribute(p.intensity, "intensity", i, cloud)
            _check_attribute(p.classification, "classification", i, cloud)

    def _reject_non_finite(self, points: Any, cloud: PointCloud) -> None:
        bad = self._backend.non_finite_indices(points=points)
        if len(bad) > 0:
            raise InvalidInputError(
                f"'{cloud.name}' has {len(bad)} point(s) with non-finite coordinates "
                f"(first at index {int(bad[0])})",
                context=cloud.name,
            )

    def _check_deadline(self, deadline: Optional[float], stage: str) -> None:
        if deadline is not None and self._clock() > deadline:
            raise ComparisonTimeoutError(
                f"Comparison exceeded {self._settings.timeout_s} s during {stage}",
                context=stage,
            )

    def _query(self, index: NeighborIndex, source: Any, deadline: Optional[float]) -> Tuple[NeighborMatch, ...]:
        settings = self._settings
        n = len(source)
        starts = list(range(0, n, settings.chunk_size))
        radius = settings.max_search_distance

        if self._executor is not None and settings.workers > 1 and len(starts) > 1:
            futures = [
                self._executor.submit(
                    index.query_nearest,
                    points=source[s:s + settings.chunk_size],
                    max_distance=radius,
                )
                for s in starts
            ]
            timeout = None if deadline is None else max(0.0, deadline - self._clock())
            _, pending = wait(futures, timeout=timeout)
            if pending:
                for f in futures:
                    f.cancel()
                raise ComparisonTimeoutError(
                    f"Comparison exceeded {settings.timeout_s} s during matching",
                    context="match",
                )
            chunks = [f.result() for f in futures]
        else:
            chunks = []
            for s in starts:
                self._check_deadline(deadline, "match")
                chunks.append(
                    index.query_nearest(points=source[s:s + settings.chunk_size], max_distance=radius)
                )

        matches: List[NeighborMatch] = []
        for s, (indices, distances) in zip(starts, chunks):
            matches.extend(matches_from_arrays(indices, distances, offset=s))
        return tuple(matches)
