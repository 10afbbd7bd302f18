import itertools
import json
import math
import threading

import numpy as np
import pytest

from deformation_analysis.domain.model import (
    ComparisonSettings,
    MatcherKind,
    Point,
    PointCloud,
    ThresholdMode,
)
from deformation_analysis.entrypoints.compare_point_clouds import (
    DeformationEngine,
    compare_point_clouds,
)
from deformation_analysis.infrastructure import JsonComparisonRepository, cloud_from_arrays, result_to_dict
from deformation_analysis.infrastructure.numpy_adapter import NumpyBackend
from exceptions.exceptions import (
    ComparisonTimeoutError,
    ConfigurationError,
    InvalidInputError,
    ResourceExhaustedError,
)
from pcdtools.synthetic import capture_pair, displace_with_bulge, noisy_sphere


def _pair(n=300, seed=1, displacement=0.3):
    ref, cmp_ = capture_pair(n, seed=seed, displacement=displacement)
    return cloud_from_arrays("ref", ref), cloud_from_arrays("cmp", cmp_)


def test_two_point_scenario():
    a = cloud_from_arrays("a", [[0, 0, 0], [10, 0, 0]])
    b = cloud_from_arrays("b", [[0, 0, 0.05], [10, 0, 5]])

    result = compare_point_clouds(a, b, settings=ComparisonSettings(max_search_distance=1.0))

    first, second = result.records
    assert first.matched
    assert first.distance == pytest.approx(0.05)
    assert not first.is_significant
    assert not second.matched
    assert result.statistics.matched_count == 1
    assert result.statistics.total_count == 2
    assert result.statistics.max_distance == pytest.approx(0.05)
    assert result.bounds1.max_x == 10.0
    assert result.bounds2.max_z == 5.0
    assert len(result.colors) == 2


def test_identical_clouds():
    ref, _ = _pair(200)

    result = compare_point_clouds(ref, ref)

    assert all(r.matched and r.distance == 0.0 for r in result.records)
    assert [r.matched_point for r in result.records] == list(ref.points)
    assert result.statistics.max_distance == 0.0
    assert result.statistics.mean_distance == 0.0
    assert result.statistics.significant_count == 0


def test_empty_comparison_cloud():
    ref, _ = _pair(50)

    result = compare_point_clouds(ref, PointCloud("empty"))

    assert result.statistics.matched_count == 0
    assert result.statistics.max_distance == 0.0
    assert result.statistics.mean_distance == 0.0
    assert result.statistics.total_count == 50
    assert not any(r.matched for r in result.records)
    assert result.bounds2 is None


def test_repeated_comparisons_are_identical():
    ref, cmp_ = _pair(400)

    with DeformationEngine(ComparisonSettings(max_search_distance=0.5)) as engine:
        first = engine.compare(ref, cmp_)
        second = engine.compare(ref, cmp_)

    assert first.records == second.records
    assert first.colors == second.colors
    assert first.statistics.max_distance == second.statistics.max_distance
    assert first.statistics.mean_distance == second.statistics.mean_distance


@pytest.mark.parametrize("matcher", ["brute_force", "kdtree", "grid"])
def test_matchers_produce_identical_records(matcher):
    ref, cmp_ = _pair(300, seed=4)
    baseline = compare_point_clouds(ref, cmp_, settings=ComparisonSettings(matcher="brute_force"))

    result = compare_point_clouds(ref, cmp_, settings=ComparisonSettings(matcher=matcher))

    assert result.matcher == MatcherKind(matcher)
    assert result.records == baseline.records


def test_auto_switches_to_kdtree_above_pair_ceiling():
    ref, cmp_ = _pair(100)
    result = compare_point_clouds(ref, cmp_, settings=ComparisonSettings(brute_force_max_pairs=50))
    assert result.matcher == MatcherKind.KDTREE


def test_parallel_workers_match_sequential_run():
    ref, cmp_ = _pair(500, seed=9)
    sequential = compare_point_clouds(ref, cmp_, settings=ComparisonSettings(chunk_size=64))

    settings = ComparisonSettings(chunk_size=64, workers=3, timeout_s=None)
    with DeformationEngine(settings) as engine:
        parallel = engine.compare(ref, cmp_)
    assert engine.closed

    assert parallel.records == sequential.records


def test_bulge_is_flagged_as_significant():
    ref_xyz = noisy_sphere(800, seed=2)
    cmp_xyz, offsets = displace_with_bulge(ref_xyz, displacement=0.4)

    result = compare_point_clouds(
        cloud_from_arrays("ref", ref_xyz),
        cloud_from_arrays("cmp", cmp_xyz),
        settings=ComparisonSettings(max_search_distance=1.0, significance_threshold=0.2),
    )

    assert result.statistics.significant_count > 0
    assert result.statistics.max_distance <= 0.4 + 1e-9
    # Points on the far hemisphere did not move, so they match at distance 0
    unmoved = np.flatnonzero(offsets == 0.0)
    assert all(result.records[i].distance == 0.0 for i in unmoved)


def test_bbox_relative_threshold():
    ref, cmp_ = _pair(200)
    settings = ComparisonSettings(significance_threshold=0.01, threshold_mode=ThresholdMode.BBOX_RELATIVE)

    result = compare_point_clouds(ref, cmp_, settings=settings)

    assert result.significance_threshold == pytest.approx(0.01 * result.bounds1.diagonal)
    expected = sum(1 for r in result.records if r.matched and r.distance > result.significance_threshold)
    assert result.statistics.significant_count == expected


def test_attributes_pass_through():
    a = PointCloud("a", (Point(0, 0, 0, intensity=12, classification=2),))
    b = PointCloud("b", (Point(0, 0, 0.1, intensity=200, classification=6),))

    record = compare_point_clouds(a, b).records[0]

    assert record.source_point.intensity == 12
    assert record.matched_point.classification == 6


@pytest.mark.parametrize(
    "points",
    [
        (Point(0, 0, math.nan),),
        (Point(math.inf, 0, 0),),
        (Point("abc", 0, 0),),
        (Point("0.5", 0, 0),),
        (Point(0, True, 0),),
        (Point(0, 0, 0, intensity=256),),
        (Point(0, 0, 0, classification=-1),),
        ((0.0, 0.0, 0.0),),
    ],
)
def test_invalid_points_are_rejected(points):
    good = PointCloud("good", (Point(0, 0, 0),))
    with pytest.raises(InvalidInputError) as exc:
        compare_point_clouds(good, PointCloud("bad", points))
    assert exc.value.code == "INVALID_INPUT"
    assert exc.value.context == "bad"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_search_distance": 0.0},
        {"max_search_distance": -1.0},
        {"max_search_distance": math.inf},
        {"significance_threshold": -0.1},
        {"chunk_size": 0},
        {"workers": 0},
        {"timeout_s": 0.0},
    ],
)
def test_bad_settings_fail_before_matching(kwargs):
    with pytest.raises(ConfigurationError):
        DeformationEngine(ComparisonSettings(**kwargs))


def test_unknown_matcher_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        ComparisonSettings(matcher="octree")


def test_point_ceiling():
    ref, cmp_ = _pair(20)
    with pytest.raises(ResourceExhaustedError):
        compare_point_clouds(ref, cmp_, settings=ComparisonSettings(max_points=10))


def test_timeout_aborts_comparison():
    ref, cmp_ = _pair(100)
    ticks = itertools.count(0.0, 5.0)

    engine = DeformationEngine(ComparisonSettings(timeout_s=1.0), clock=lambda: next(ticks))
    with pytest.raises(ComparisonTimeoutError) as exc:
        engine.compare(ref, cmp_)
    engine.close()

    assert exc.value.code == "TIMEOUT"


def test_closed_engine_refuses_work():
    ref, cmp_ = _pair(10)
    engine = DeformationEngine()
    engine.close()
    engine.close()
    with pytest.raises(RuntimeError):
        engine.compare(ref, cmp_)


def test_json_repository_writes_deterministic_prefix(tmp_path):
    ref, cmp_ = _pair(40)
    result = compare_point_clouds(ref, cmp_)

    out = JsonComparisonRepository(tmp_path / "out" / "result.json").save(result=result, limit=5)
    data = json.loads(out.read_text(encoding="utf-8"))

    full = result_to_dict(result)
    assert data["records_total"] == 40
    assert data["records_truncated"] is True
    assert data["deformation_records"] == full["deformation_records"][:5]
    assert len(data["colors"]) == 5
    assert data["statistics"]["total_count"] == 40
    assert full["records_truncated"] is False

    with pytest.raises(ValueError):
        result_to_dict(result, limit=-1)


class _BlockingIndex:
    """Wraps an index so every chunk query waits until `release` is set."""

    def __init__(self, inner, release):
        self.inner = inner
        self.release = release
        self.finished = 0

    def query_nearest(self, *, points, max_distance):
        self.release.wait(5.0)
        self.finished += 1
        return self.inner.query_nearest(points=points, max_distance=max_distance)


class _BlockingBackend(NumpyBackend):
    def __init__(self, release, indices):
        super().__init__()
        object.__setattr__(self, "_release", release)
        object.__setattr__(self, "_indices", indices)

    def build_index(self, *, kind, target, max_distance):
        index = _BlockingIndex(
            super().build_index(kind=kind, target=target, max_distance=max_distance),
            self._release,
        )
        self._indices.append(index)
        return index


def test_timeout_on_worker_pool_cancels_pending_chunks():
    ref, cmp_ = _pair(8)
    release = threading.Event()
    indices = []
    settings = ComparisonSettings(workers=2, chunk_size=1, timeout_s=0.2)

    engine = DeformationEngine(settings, backend=_BlockingBackend(release, indices))
    try:
        with pytest.raises(ComparisonTimeoutError) as exc:
            engine.compare(ref, cmp_)
    finally:
        release.set()
        engine.close()

    assert exc.value.code == "TIMEOUT"
    assert exc.value.context == "match"
    # Only the chunks already running when the budget ran out get to finish
    assert indices[0].finished <= settings.workers


def test_grid_too_fine_for_extent_is_resource_exhausted():
    a = cloud_from_arrays("a", [[0, 0, 0], [1000, 0, 0]])
    b = cloud_from_arrays("b", [[0, 0, 0], [1000, 0, 0]])
    settings = ComparisonSettings(matcher="grid", max_search_distance=1e-16)

    with pytest.raises(ResourceExhaustedError) as exc:
        compare_point_clouds(a, b, settings=settings)
    assert exc.value.context == "grid"
