"""Radius-bounded nearest-neighbor indices over a target cloud.

Every index computes candidate distances with `pairwise_distances` and picks
the winner with `_select_nearest`, so brute force, k-d tree and grid return
the same match for the same inputs:

- a candidate counts only if its distance is strictly below `max_distance`
- the smallest distance wins
- exact ties go to the lowest target index
"""
from __future__ import annotations

from typing import Dict, List, Tuple

import numpy as np

from exceptions.exceptions import ResourceExhaustedError

UNMATCHED = -1

# Upper bound on (block rows x target points) evaluated at once by brute force
_PAIR_BLOCK = 1_000_000

# Tree radius queries are widened slightly; the exact test happens in _select_nearest
_RADIUS_SLACK = 1e-9

# Cell coordinates must stay well inside int64 (neighbor offsets add +-1)
_MAX_CELL_KEY = 2.0 ** 62


def pairwise_distances(query: np.ndarray, candidates: np.ndarray) -> np.ndarray:
    """Euclidean distance, component by component, broadcasting query against candidates."""
    dx = query[..., 0] - candidates[..., 0]
    dy = query[..., 1] - candidates[..., 1]
    dz = query[..., 2] - candidates[..., 2]
    return np.sqrt(dx * dx + dy * dy + dz * dz)


def _empty_result(n: int) -> Tuple[np.ndarray, np.ndarray]:
    return np.full(n, UNMATCHED, dtype=np.int64), np.full(n, np.nan, dtype=np.float64)


def _select_nearest(
    query: np.ndarray,
    target: np.ndarray,
    candidates: np.ndarray,
    max_distance: float,
) -> Tuple[int, float]:
    """Return (target_index, distance) of the winning candidate, or (UNMATCHED, nan)."""
    if candidates.size == 0:
        return UNMATCHED, float("nan")
    candidates = np.sort(candidates)
    d = pairwise_distances(query, target[candidates])
    d = np.where(d < max_distance, d, np.inf)
    best = int(np.argmin(d))  # first occurrence == lowest index
    if not np.isfinite(d[best]):
        return UNMATCHED, float("nan")
    return int(candidates[best]), float(d[best])


class BruteForceIndex:
    """O(n*m) scan, evaluated in blocks to bound memory."""

    def __init__(self, target: np.ndarray):
        self.target = np.asarray(target, dtype=np.float64).reshape(-1, 3)

    def query_nearest(self, *, points: np.ndarray, max_distance: float) -> Tuple[np.ndarray, np.ndarray]:
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        n, m = points.shape[0], self.target.shape[0]
        indices, distances = _empty_result(n)
        if n == 0 or m == 0:
            return indices, distances

        step = max(1, _PAIR_BLOCK // m)
        for start in range(0, n, step):
            block = points[start:start + step]
            d = pairwise_distances(block[:, None, :], self.target[None, :, :])
            d = np.where(d < max_distance, d, np.inf)
            best = np.argmin(d, axis=1)
            best_d = d[np.arange(block.shape[0]), best]
            ok = np.isfinite(best_d)

            idx_view = indices[start:start + block.shape[0]]
            dist_view = distances[start:start + block.shape[0]]
            idx_view[ok] = best[ok]
            dist_view[ok] = best_d[ok]
        return indices, distances


class KDTreeIndex:
    """scikit-learn KDTree over the target; radius query then exact selection."""

    def __init__(self, target: np.ndarray, leaf_size: int = 40):
        self.target = np.asarray(target, dtype=np.float64).reshape(-1, 3)
        self._tree = None
        if self.target.shape[0] > 0:
            from sklearn.neighbors import KDTree

            self._tree = KDTree(self.target, leaf_size=leaf_size)

    def query_nearest(self, *, points: np.ndarray, max_distance: float) -> Tuple[np.ndarray, np.ndarray]:
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        n = points.shape[0]
        indices, distances = _empty_result(n)
        if n == 0 or self._tree is None:
            return indices, distances

        radius = max_distance * (1.0 + _RADIUS_SLACK)
        neighborhoods = self._tree.query_radius(points, r=radius, return_distance=False)
        for i, cand in enumerate(neighborhoods):
            j, dist = _select_nearest(points[i], self.target, np.asarray(cand, dtype=np.int64), max_distance)
            if j != UNMATCHED:
                indices[i] = j
                distances[i] = dist
        return indices, distances


class GridIndex:
    """Uniform voxel grid with cell edge == search radius; queries visit the 27 surrounding cells."""

    def __init__(self, target: np.ndarray, cell_size: float):
        if not cell_size > 0:
            raise ValueError("cell_size must be positive")
        self.target = np.asarray(target, dtype=np.float64).reshape(-1, 3)
        self.cell_size = float(cell_size)
        self.origin = self.target.min(axis=0) if self.target.shape[0] else np.zeros(3)

        keys = self._cell_keys(self.target)
        staging: Dict[Tuple[int, int, int], List[int]] = {}
        # Indices are appended in ascending order, so each bucket is sorted
        for i, key in enumerate(map(tuple, keys)):
            staging.setdefault(key, []).append(i)
        self._buckets: Dict[Tuple[int, int, int], np.ndarray] = {
            k: np.asarray(v, dtype=np.int64) for k, v in staging.items()
        }

    def _cell_keys(self, pts: np.ndarray) -> np.ndarray:
        scaled = np.floor((pts - self.origin) / self.cell_size)
        if scaled.size and not np.all(np.abs(scaled) < _MAX_CELL_KEY):
            raise ResourceExhaustedError(
                f"Grid cells of size {self.cell_size} cannot index this extent; use the k-d tree matcher",
                context="grid",
            )
        return scaled.astype(np.int64)

    def query_nearest(self, *, points: np.ndarray, max_distance: float) -> Tuple[np.ndarray, np.ndarray]:
        if max_distance > self.cell_size:
            raise ValueError(
                f"max_distance {max_distance} exceeds grid cell size {self.cell_size}"
            )
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        n = points.shape[0]
        indices, distances = _empty_result(n)
        if n == 0 or not self._buckets:
            return indices, distances

        offsets = [(dx, dy, dz) for dx in (-1, 0, 1) for dy in (-1, 0, 1) for dz in (-1, 0, 1)]
        empty = np.empty((0,), dtype=np.int64)
        for i, (cx, cy, cz) in enumerate(map(tuple, self._cell_keys(points))):
            found = [
                self._buckets[key]
                for key in ((cx + ox, cy + oy, cz + oz) for ox, oy, oz in offsets)
                if key in self._buckets
            ]
            cand = np.concatenate(found) if found else empty
            j, dist = _select_nearest(points[i], self.target, cand, max_distance)
            if j != UNMATCHED:
                indices[i] = j
                distances[i] = dist
        return indices, distances
