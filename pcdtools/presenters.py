"""Output presentation helpers for comparison results.

Separates printing/formatting logic from the engine and the CLI.
"""
from __future__ import annotations

from typing import Optional

from deformation_analysis.domain.model import Bounds, ComparisonResult, DeformationStatistics


def format_mm(meters: float) -> str:
    """Distances are reported in millimetres with two decimals."""
    return f"{meters * 1000.0:.2f} mm"


def format_bounds(bounds: Optional[Bounds]) -> str:
    if bounds is None:
        return "(empty)"
    return (
        f"x [{bounds.min_x:.3f}, {bounds.max_x:.3f}]  "
        f"y [{bounds.min_y:.3f}, {bounds.max_y:.3f}]  "
        f"z [{bounds.min_z:.3f}, {bounds.max_z:.3f}]"
    )


def print_statistics(stats: DeformationStatistics) -> None:
    """Print the deformation statistics panel."""
    print("  Deformation:")
    print(f"    Max deformation: {format_mm(stats.max_distance)}")
    print(f"    Mean deformation: {format_mm(stats.mean_distance)}")
    print(f"    Significant changes: {stats.significant_count}")
    print(f"    Matched points: {stats.matched_count} / {stats.total_count}")
    print(f"    Processing time: {stats.processing_time_ms:.1f} ms")


def print_comparison_summary(result: ComparisonResult) -> None:
    """Print formatted summary for a whole comparison."""
    print("\nDeformation Analysis Results")
    print(f"Reference: {result.reference_name or '-'}")
    print(f"Comparison: {result.comparison_name or '-'}")
    print(f"  Reference bounds: {format_bounds(result.bounds1)}")
    print(f"  Comparison bounds: {format_bounds(result.bounds2)}")
    print(f"  Matcher: {result.matcher.value}")
    print(f"  Significance threshold: {format_mm(result.significance_threshold)}")
    print_statistics(result.statistics)
