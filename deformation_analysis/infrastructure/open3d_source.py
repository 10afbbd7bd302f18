"""Open3D-backed adapters: load captures, export the colored deformation cloud."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from deformation_analysis.domain.model import ComparisonResult, PointCloud
from deformation_analysis.infrastructure.numpy_adapter import cloud_from_arrays
from exceptions.exceptions import InvalidInputError


@dataclass(frozen=True)
class Open3dPointCloudSource:
    """Load PCD/PLY/XYZ captures; the cloud is named after the file."""

    def load(self, *, path: Path) -> PointCloud:
        from pcdtools.io import read_points

        path = Path(path)
        try:
            xyz = read_points(str(path))
        except (FileNotFoundError, ValueError) as e:
            raise InvalidInputError(str(e), context=str(path)) from e
        return cloud_from_arrays(path.name, xyz)


def export_colored_cloud(result: ComparisonResult, path: Path) -> Path:
    """Write the reference points colored by deformation severity."""
    from pcdtools.io import write_point_cloud_from_arrays

    points = np.array(
        [(r.source_point.x, r.source_point.y, r.source_point.z) for r in result.records],
        dtype=np.float64,
    ).reshape(-1, 3)
    colors = np.array([(c.r, c.g, c.b) for c in result.colors], dtype=np.float64).reshape(-1, 3)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_point_cloud_from_arrays(str(path), points, colors)
    return path
