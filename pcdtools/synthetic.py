from __future__ import annotations

"""Synthetic capture pairs for demos and tests.

`noisy_sphere` scatters points in a thick spherical shell; `displace_with_bulge`
pushes a patch of it outward along the radial direction, giving a second
capture with a known, localized deformation.
"""

import numpy as np
from typing import Tuple


def noisy_sphere(
    point_count: int = 1000,
    *,
    inner_radius: float = 3.0,
    outer_radius: float = 5.0,
    noise: float = 0.25,
    seed: int = 0,
) -> np.ndarray:
    """Points on random radii in [inner_radius, outer_radius) with uniform jitter.

    Args:
        point_count: number of points to generate.
        inner_radius, outer_radius: radius range of the shell.
        noise: per-axis jitter amplitude, uniform in [-noise, noise).
        seed: RNG seed for determinism.

    Returns:
        (N,3) float64 array.
    """
    if point_count < 0:
        raise ValueError("point_count must be non-negative")
    rng = np.random.default_rng(seed)
    theta = rng.uniform(0.0, 2.0 * np.pi, size=point_count)
    phi = rng.uniform(0.0, np.pi, size=point_count)
    radius = rng.uniform(inner_radius, outer_radius, size=point_count)

    xyz = np.column_stack([
        radius * np.sin(phi) * np.cos(theta),
        radius * np.sin(phi) * np.sin(theta),
        radius * np.cos(phi),
    ])
    jitter = rng.uniform(-noise, noise, size=(point_count, 3))
    return xyz + jitter


def displace_with_bulge(
    points: np.ndarray,
    *,
    displacement: float = 0.3,
    direction: Tuple[float, float, float] = (0.0, 0.0, 1.0),
    spread: float = 0.5,
) -> Tuple[np.ndarray, np.ndarray]:
    """Push points near `direction` outward along their radial vector.

    The push falls off as cos(angle) ** (1 / spread) and is zero on the far
    hemisphere.

    Args:
        points: (N,3) input cloud centred on the origin.
        displacement: peak outward push in meters.
        direction: axis the bulge is centred on.
        spread: larger values widen the bulge.

    Returns:
        (displaced_points, offsets): the moved cloud and the per-point push
        length of shape (N,).
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if pts.shape[0] == 0:
        return pts.copy(), np.zeros((0,), dtype=np.float64)
    if spread <= 0:
        raise ValueError("spread must be positive")

    axis = np.asarray(direction, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)

    norms = np.linalg.norm(pts, axis=1)
    safe = np.where(norms > 0, norms, 1.0)
    radial = pts / safe[:, None]
    cos_angle = np.clip(radial @ axis, 0.0, 1.0)
    offsets = displacement * cos_angle ** (1.0 / spread)
    offsets[norms == 0] = 0.0

    return pts + radial * offsets[:, None], offsets


def capture_pair(
    point_count: int = 1000,
    *,
    seed: int = 0,
    displacement: float = 0.3,
) -> Tuple[np.ndarray, np.ndarray]:
    """Reference sphere and a bulged copy of it."""
    reference = noisy_sphere(point_count, seed=seed)
    comparison, _ = displace_with_bulge(reference, displacement=displacement)
    return reference, comparison
