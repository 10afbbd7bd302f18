"""Deformation severity to RGB.

HSL with full saturation and lightness 0.5 is the same color as HSV with
full saturation and value, so matplotlib's vectorized `hsv_to_rgb` is used.
"""
from __future__ import annotations

import numpy as np
from matplotlib.colors import hsv_to_rgb, rgb_to_hsv

# Blue for no deformation, red for the largest observed deformation
LOW_HUE = 0.7
HIGH_HUE = 0.0


def normalize_ratios(distances: np.ndarray, max_distance: float) -> np.ndarray:
    """distance / max_distance clamped to [0, 1]; NaN (unmatched) and max_distance <= 0 map to 0."""
    d = np.asarray(distances, dtype=np.float64).reshape(-1)
    if not np.isfinite(max_distance) or max_distance <= 0:
        return np.zeros_like(d)
    ratios = np.where(np.isfinite(d), d / max_distance, 0.0)
    return np.clip(ratios, 0.0, 1.0)


def ratios_to_rgb(
    ratios: np.ndarray,
    low_hue: float = LOW_HUE,
    high_hue: float = HIGH_HUE,
) -> np.ndarray:
    """Map ratios in [0, 1] to (N, 3) RGB in [0, 1] by a linear hue sweep."""
    r = np.clip(np.asarray(ratios, dtype=np.float64).reshape(-1), 0.0, 1.0)
    hue = low_hue + (high_hue - low_hue) * r
    hsv = np.column_stack([hue, np.ones_like(hue), np.ones_like(hue)])
    if hsv.shape[0] == 0:
        return np.empty((0, 3), dtype=np.float64)
    return hsv_to_rgb(hsv)


def rgb_to_hue(rgb: np.ndarray) -> np.ndarray:
    """Hue channel of (N, 3) RGB, used to read severity back from a color."""
    arr = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
    if arr.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)
    return rgb_to_hsv(arr)[:, 0]
