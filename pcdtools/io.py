from __future__ import annotations

from pathlib import Path

import open3d as o3d
import numpy as np

SUPPORTED_SUFFIXES = (".pcd", ".ply", ".xyz", ".xyzn", ".xyzrgb", ".pts")


def read_point_cloud(path: str) -> o3d.geometry.PointCloud:
    """Read a point cloud from disk using Open3D.

    Supported formats include PCD/PLY/XYZ depending on Open3D compilation.
    """
    return o3d.io.read_point_cloud(path)


def read_points(path: str) -> np.ndarray:
    """Read only the XYZ coordinates of a capture as an (N, 3) float64 array.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the suffix is not a format Open3D reads.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Point cloud not found: {path}")
    if p.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ValueError(
            f"Unsupported point cloud format '{p.suffix}'; expected one of {', '.join(SUPPORTED_SUFFIXES)}"
        )
    pcd = read_point_cloud(str(p))
    pts = np.asarray(pcd.points, dtype=np.float64)
    return pts.reshape(-1, 3)


def write_point_cloud_from_arrays(
    path: str,
    points: np.ndarray,
    colors: np.ndarray | None = None,
) -> None:
    """Write a point cloud to disk from numpy arrays using Open3D.

    Args:
        path: Output file path (e.g., .pcd, .ply). Extension determines format.
        points: Array of shape (N, 3) with XYZ coordinates.
        colors: Optional array of shape (N, 3) with RGB in [0, 1].

    Raises:
        ValueError: If input shapes are invalid or sizes mismatch.
        RuntimeError: If the point cloud cannot be written.
    """
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError("points must have shape (N, 3)")
    if colors is not None:
        if colors.ndim != 2 or colors.shape[1] != 3:
            raise ValueError("colors must have shape (N, 3) when provided")
        if colors.shape[0] != points.shape[0]:
            raise ValueError("colors and points must have the same number of rows (N)")

    pc = o3d.geometry.PointCloud()
    pc.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=np.float64))
    if colors is not None and colors.size > 0:
        pc.colors = o3d.utility.Vector3dVector(np.asarray(colors, dtype=np.float64))

    ok = o3d.io.write_point_cloud(
        path,
        pc,
        print_progress=False,
    )
    if not ok:
        raise RuntimeError(f"Failed to write point cloud to {path}")
