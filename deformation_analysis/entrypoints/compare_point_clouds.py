"""Entrypoint: deformation engine context and compare functions for CLIs/callers."""
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Callable, Optional

from deformation_analysis.application.use_case import CompareCapturesUseCase
from deformation_analysis.domain.model import ComparisonResult, ComparisonSettings, PointCloud
from deformation_analysis.domain.services import (
    DeformationAnalysisService,
    DeformationStatisticsAggregator,
)
from deformation_analysis.domain.strategies import (
    HueGradientColorMapper,
    ThresholdDeformationScorer,
    select_matcher,
)
from deformation_analysis.infrastructure.numpy_adapter import NumpyBackend
from deformation_analysis.ports import ComparisonRepository, PointCloudBackend, PointCloudSource


class DeformationEngine:
    """Caller-owned engine context.

    This is the composition root for the deformation-analysis context: it wires
    the backend, strategies and service, and owns the worker pool used when
    `settings.workers > 1`. Create it, call `compare()` any number of times,
    then `close()` it (or use it as a context manager).

    Example:
        with DeformationEngine(ComparisonSettings(max_search_distance=0.5)) as engine:
            result = engine.compare(reference, comparison)
    """

    def __init__(
        self,
        settings: Optional[ComparisonSettings] = None,
        *,
        backend: Optional[PointCloudBackend] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        settings = (settings or ComparisonSettings()).validate()

        # Infrastructure: processing backend (libraries)
        self._backend = backend or NumpyBackend()

        # Owned resources
        self._executor: Optional[ThreadPoolExecutor] = None
        if settings.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=settings.workers, thread_name_prefix="deformation-match"
            )
        self._closed = False

        # Domain: orchestration service with default strategies
        self._service = DeformationAnalysisService(
            backend=self._backend,
            settings=settings,
            matcher_selector=partial(select_matcher, backend=self._backend),
            scorer_factory=ThresholdDeformationScorer,
            aggregator=DeformationStatisticsAggregator(),
            color_mapper=HueGradientColorMapper(backend=self._backend),
            executor=self._executor,
            clock=clock,
        )

    @property
    def settings(self) -> ComparisonSettings:
        return self._service.settings

    @property
    def service(self) -> DeformationAnalysisService:
        return self._service

    @property
    def closed(self) -> bool:
        return self._closed

    def compare(self, reference: PointCloud, comparison: PointCloud) -> ComparisonResult:
        """Compare `reference` (earlier capture) against `comparison` (later capture)."""
        if self._closed:
            raise RuntimeError("DeformationEngine is closed")
        return self._service.compare(reference, comparison)

    def close(self) -> None:
        """Release the worker pool. Safe to call more than once."""
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
        self._closed = True

    def __enter__(self) -> "DeformationEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def compare_point_clouds(
    reference: PointCloud,
    comparison: PointCloud,
    *,
    settings: Optional[ComparisonSettings] = None,
) -> ComparisonResult:
    """One-shot comparison with a short-lived engine."""
    with DeformationEngine(settings) as engine:
        return engine.compare(reference, comparison)


def compare_point_cloud_files(
    *,
    reference_path: Path,
    comparison_path: Path,
    settings: Optional[ComparisonSettings] = None,
    cloud_source: Optional[PointCloudSource] = None,
    result_repo: Optional[ComparisonRepository] = None,
    record_limit: Optional[int] = None,
) -> ComparisonResult:
    """Entrypoint to compare two captures stored on disk.

    Args:
        reference_path: Earlier capture (PCD/PLY/XYZ).
        comparison_path: Later capture.
        settings: Engine settings; defaults to ComparisonSettings().
        cloud_source: Optional custom loader; defaults to Open3D.
        result_repo: Optional repository for persisting the result.
        record_limit: Max records handed to the repository.

    Returns:
        The full ComparisonResult.
    """
    if cloud_source is None:
        # Infrastructure: Open3D is only imported when files are involved
        from deformation_analysis.infrastructure.open3d_source import Open3dPointCloudSource

        cloud_source = Open3dPointCloudSource()

    with DeformationEngine(settings) as engine:
        # Application: use case
        use_case = CompareCapturesUseCase(
            cloud_source=cloud_source,
            analysis_service=engine.service,
            result_repo=result_repo,
        )
        return use_case.run(
            reference_path=Path(reference_path),
            comparison_path=Path(comparison_path),
            record_limit=record_limit,
        )
