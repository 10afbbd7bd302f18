"""Application layer: use cases for deformation analysis."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from deformation_analysis.domain.model import ComparisonResult
from deformation_analysis.domain.services import DeformationAnalysisService
from deformation_analysis.ports import ComparisonRepository, PointCloudSource


@dataclass(frozen=True)
class CompareCapturesUseCase:
    """Use case: compare two stored captures of the same object.

    This is an application service that orchestrates:
    - Loading (via PointCloudSource port)
    - Analysis (via DeformationAnalysisService domain service)
    - Persistence (via optional ComparisonRepository port)
    """

    cloud_source: PointCloudSource
    analysis_service: DeformationAnalysisService
    result_repo: Optional[ComparisonRepository] = None

    def run(
        self,
        *,
        reference_path: Path,
        comparison_path: Path,
        record_limit: Optional[int] = None,
    ) -> ComparisonResult:
        """Load both captures, compare reference against comparison, optionally persist.

        Args:
            reference_path: Earlier capture (every point gets a record).
            comparison_path: Later capture searched for neighbors.
            record_limit: Max records written by the repository (prefix).

        Returns:
            The full ComparisonResult (never truncated).
        """
        reference = self.cloud_source.load(path=Path(reference_path))
        comparison = self.cloud_source.load(path=Path(comparison_path))
        logging.debug(
            "Loaded %s (%d points) and %s (%d points)",
            reference.name, len(reference), comparison.name, len(comparison),
        )

        result = self.analysis_service.compare(reference, comparison)
        logging.debug(
            "Matched %d / %d points with %s in %.1f ms",
            result.statistics.matched_count,
            result.statistics.total_count,
            result.matcher.value,
            result.statistics.processing_time_ms,
        )

        if self.result_repo is not None:
            out = self.result_repo.save(result=result, limit=record_limit)
            logging.info("Wrote %s", out)

        return result
