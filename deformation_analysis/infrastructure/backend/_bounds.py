"""Axis-aligned bounds and coordinate sanity checks."""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np


def compute_bounds(points: np.ndarray) -> Optional[Tuple[float, float, float, float, float, float]]:
    """Return (min_x, max_x, min_y, max_y, min_z, max_z), or None for an empty cloud."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if pts.shape[0] == 0:
        return None
    mins = pts.min(axis=0)
    maxs = pts.max(axis=0)
    return (
        float(mins[0]), float(maxs[0]),
        float(mins[1]), float(maxs[1]),
        float(mins[2]), float(maxs[2]),
    )


def non_finite_rows(points: np.ndarray) -> np.ndarray:
    """Indices of rows holding NaN or +/-inf in any coordinate."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return np.flatnonzero(~np.isfinite(pts).all(axis=1))
