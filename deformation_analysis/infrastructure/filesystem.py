"""Filesystem adapters for deformation analysis."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from deformation_analysis.domain.model import (
    Bounds,
    ColorSample,
    ComparisonResult,
    DeformationRecord,
    Point,
)


# ---------------------------------------------------------------------------
# ComparisonRepository Adapter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JsonComparisonRepository:
    """Filesystem adapter: persist a ComparisonResult as JSON."""

    output_path: Path

    def save(self, *, result: ComparisonResult, limit: Optional[int] = None) -> Path:
        """Write the result (at most `limit` records) and return the file path."""
        path = Path(self.output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(result_to_dict(result, limit=limit), indent=2),
            encoding="utf-8",
        )
        return path


# ---------------------------------------------------------------------------
# Serialization Helpers
# ---------------------------------------------------------------------------


def result_to_dict(result: ComparisonResult, limit: Optional[int] = None) -> Dict[str, Any]:
    """Convert a ComparisonResult to a JSON-serializable dictionary.

    `limit` keeps the first `limit` records and colors (a deterministic prefix);
    statistics always describe the full record set.
    """
    if limit is not None and limit < 0:
        raise ValueError("limit must be >= 0")
    total = len(result.records)
    kept = total if limit is None else min(limit, total)
    return {
        "reference": result.reference_name,
        "comparison": result.comparison_name,
        "matcher": result.matcher.value,
        "significance_threshold": result.significance_threshold,
        "bounds1": _bounds_to_dict(result.bounds1),
        "bounds2": _bounds_to_dict(result.bounds2),
        "statistics": {
            "max_distance": result.statistics.max_distance,
            "mean_distance": result.statistics.mean_distance,
            "significant_count": result.statistics.significant_count,
            "matched_count": result.statistics.matched_count,
            "total_count": result.statistics.total_count,
            "processing_time_ms": result.statistics.processing_time_ms,
        },
        "records_total": total,
        "records_truncated": kept < total,
        "deformation_records": [_record_to_dict(r) for r in result.records[:kept]],
        "colors": [_color_to_list(c) for c in result.colors[:kept]],
    }


def _bounds_to_dict(bounds: Optional[Bounds]) -> Optional[Dict[str, float]]:
    """Convert Bounds to a dict, or None for an empty cloud."""
    if bounds is None:
        return None
    return {
        "min_x": bounds.min_x,
        "max_x": bounds.max_x,
        "min_y": bounds.min_y,
        "max_y": bounds.max_y,
        "min_z": bounds.min_z,
        "max_z": bounds.max_z,
    }


def _point_to_dict(point: Optional[Point]) -> Optional[Dict[str, Any]]:
    if point is None:
        return None
    out: Dict[str, Any] = {"x": point.x, "y": point.y, "z": point.z}
    if point.intensity is not None:
        out["intensity"] = point.intensity
    if point.classification is not None:
        out["classification"] = point.classification
    return out


def _record_to_dict(record: DeformationRecord) -> Dict[str, Any]:
    return {
        "source_index": record.source_index,
        "source_point": _point_to_dict(record.source_point),
        "matched_point": _point_to_dict(record.matched_point),
        "distance": record.distance,
        "is_significant": record.is_significant,
    }


def _color_to_list(color: ColorSample) -> list:
    return [color.r, color.g, color.b]
