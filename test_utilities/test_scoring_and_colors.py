import numpy as np
import pytest

from deformation_analysis.domain.model import DeformationRecord, NeighborMatch, Point
from deformation_analysis.domain.services import DeformationStatisticsAggregator, matches_from_arrays
from deformation_analysis.domain.strategies import HueGradientColorMapper, ThresholdDeformationScorer
from deformation_analysis.infrastructure import NumpyBackend, cloud_from_arrays
from deformation_analysis.infrastructure.backend import normalize_ratios, ratios_to_rgb, rgb_to_hue


def _records(distances):
    """One record per distance; None means unmatched."""
    out = []
    for i, d in enumerate(distances):
        p = Point(float(i), 0.0, 0.0)
        if d is None:
            out.append(DeformationRecord(i, p, None, None))
        else:
            out.append(DeformationRecord(i, p, Point(float(i), 0.0, d), d, is_significant=d > 0.1))
    return tuple(out)


def test_matches_from_arrays_offsets_and_unmatched():
    matches = matches_from_arrays(np.array([2, -1]), np.array([0.5, np.nan]), offset=10)
    assert matches == (
        NeighborMatch(source_index=10, target_index=2, distance=0.5),
        NeighborMatch(source_index=11, target_index=None, distance=None),
    )


def test_scorer_threshold_is_strict():
    source = cloud_from_arrays("a", [[0, 0, 0], [1, 0, 0], [2, 0, 0]])
    target = cloud_from_arrays("b", [[0, 0, 0.1], [1, 0, 0.5]])
    matches = (
        NeighborMatch(0, 0, 0.1),
        NeighborMatch(1, 1, 0.5),
        NeighborMatch(2, None, None),
    )

    records = ThresholdDeformationScorer(threshold=0.1).score(source=source, target=target, matches=matches)

    assert [r.is_significant for r in records] == [False, True, False]
    assert records[0].matched_point == target.points[0]
    assert records[2].matched_point is None
    assert records[2].distance is None
    assert [r.source_index for r in records] == [0, 1, 2]


def test_threshold_monotonicity():
    source = cloud_from_arrays("a", np.zeros((6, 3)))
    target = cloud_from_arrays("b", np.zeros((6, 3)))
    matches = tuple(NeighborMatch(i, i, d) for i, d in enumerate([0.0, 0.02, 0.1, 0.2, 0.4, 0.8]))
    aggregator = DeformationStatisticsAggregator()

    counts = []
    for threshold in (0.0, 0.01, 0.1, 0.3, 1.0):
        records = ThresholdDeformationScorer(threshold=threshold).score(
            source=source, target=target, matches=matches
        )
        counts.append(aggregator.aggregate(records).significant_count)

    assert counts == sorted(counts, reverse=True)
    assert counts[0] == 5
    assert counts[-1] == 0


def test_statistics_over_matched_records_only():
    stats = DeformationStatisticsAggregator().aggregate(
        _records([0.05, None, 0.25, None]), processing_time_ms=3.5
    )

    assert stats.max_distance == pytest.approx(0.25)
    assert stats.mean_distance == pytest.approx(0.15)
    assert stats.matched_count == 2
    assert stats.total_count == 4
    assert stats.significant_count == 1
    assert stats.processing_time_ms == 3.5
    assert stats.significant_count <= stats.matched_count <= stats.total_count


def test_statistics_with_nothing_matched():
    stats = DeformationStatisticsAggregator().aggregate(_records([None, None]))
    assert (stats.max_distance, stats.mean_distance) == (0.0, 0.0)
    assert stats.matched_count == 0
    assert stats.total_count == 2

    empty = DeformationStatisticsAggregator().aggregate(())
    assert empty.total_count == 0


def test_color_hue_is_monotonic_in_ratio():
    mapper = HueGradientColorMapper(backend=NumpyBackend())
    ratios = np.linspace(0.0, 1.0, 21)

    rgb = np.array([[c.r, c.g, c.b] for c in (mapper.map_ratio(float(r)) for r in ratios)])
    hues = rgb_to_hue(rgb)

    # Low deformation at hue 0.7 (blue), high deformation at hue 0 (red)
    assert hues[0] == pytest.approx(0.7)
    assert hues[-1] == pytest.approx(0.0)
    assert np.all(np.diff(hues) < 0)


def test_color_gradient_is_continuous():
    ratios = np.linspace(0.0, 1.0, 1001)
    rgb = ratios_to_rgb(ratios)
    jumps = np.abs(np.diff(rgb, axis=0)).max()
    assert jumps < 0.01


def test_color_ratio_is_clamped():
    mapper = HueGradientColorMapper(backend=NumpyBackend())
    assert mapper.map_ratio(-3.0) == mapper.map_ratio(0.0)
    assert mapper.map_ratio(7.0) == mapper.map_ratio(1.0)
    assert mapper.map_ratio(float("nan")) == mapper.map_ratio(0.0)


def test_zero_max_distance_maps_everything_to_low_end():
    mapper = HueGradientColorMapper(backend=NumpyBackend())
    colors = mapper.map_records(_records([0.0, 0.0, None]), 0.0)

    low = mapper.map_ratio(0.0)
    assert colors == (low, low, low)
    assert all(np.isfinite([c.r, c.g, c.b]).all() for c in colors)


def test_normalize_ratios():
    ratios = normalize_ratios(np.array([0.0, 0.5, 1.0, 2.0, np.nan]), 1.0)
    assert ratios.tolist() == [0.0, 0.5, 1.0, 1.0, 0.0]
    assert normalize_ratios(np.array([]), 1.0).shape == (0,)
    assert ratios_to_rgb(np.array([])).shape == (0, 3)
