"""
pathdev — History Path Smoother
===============================

Centered moving-average smoothing of an object's position history.

Positions are averaged over a window clamped to the valid index range
(asymmetric at both ends, no padding). Headings are NOT averaged; they
are re-derived from the smoothed positions so that the reference path
carries the direction of travel rather than the (often noisy) reported
object orientation.

License: AGPL-3.0
"""

from dataclasses import replace
from typing import List, Sequence

import numpy as np

from .models import Pose, azimuth, distance_2d

# Below this spacing [m] consecutive smoothed points are treated as
# stationary and the previous heading is held.
STATIONARY_DISTANCE = 0.1


def _check_window(window_size: int) -> int:
    if int(window_size) != window_size or window_size < 1 or window_size % 2 == 0:
        raise ValueError(f"window_size must be a positive odd integer, got {window_size!r}")
    return int(window_size)


def moving_average(positions: np.ndarray, window_size: int) -> np.ndarray:
    """
    Clamped centered moving average.

    Args:
        positions: (N, D) array of positions
        window_size: Odd window length

    Returns:
        (N, D) averaged positions. Index i averages rows
        [max(0, i - w//2), min(N - 1, i + w//2)].
    """
    n = len(positions)
    if n == 0:
        return positions.copy()

    half = _check_window(window_size) // 2
    csum = np.vstack([np.zeros((1, positions.shape[1])), np.cumsum(positions, axis=0)])

    idx = np.arange(n)
    lo = np.maximum(idx - half, 0)
    hi = np.minimum(idx + half, n - 1)
    counts = (hi - lo + 1)[:, None]

    return (csum[hi + 1] - csum[lo]) / counts


def smooth_path(poses: Sequence[Pose], window_size: int) -> List[Pose]:
    """
    Smooth a pose sequence and derive headings from the result.

    Heading at i is the azimuth from smoothed point i to i+1. The last
    point reuses the previous heading. Where a point lies within
    STATIONARY_DISTANCE of its predecessor the predecessor's heading is
    held instead. The first point always takes the azimuth to its
    successor unless both coincide, in which case it keeps its reported
    heading.

    Args:
        poses: Time-ordered poses
        window_size: Odd window length

    Returns:
        Smoothed poses, same length as the input
    """
    _check_window(window_size)
    if len(poses) <= 1:
        return [replace(p) for p in poses]

    raw = np.array([[p.x, p.y, p.z] for p in poses], dtype=np.float64)
    avg = moving_average(raw, window_size)

    smoothed = [Pose(x=float(r[0]), y=float(r[1]), z=float(r[2]), yaw=p.yaw)
                for r, p in zip(avg, poses)]

    last = len(smoothed) - 1
    for i, p in enumerate(smoothed):
        if i > 0 and distance_2d(smoothed[i - 1], p) < STATIONARY_DISTANCE:
            p.yaw = smoothed[i - 1].yaw
            continue
        if i < last:
            # no direction between coincident points
            if i > 0 or distance_2d(p, smoothed[1]) > 0.0:
                p.yaw = azimuth(p, smoothed[i + 1])
        else:
            p.yaw = smoothed[i - 1].yaw

    return smoothed


class PathSmoother:
    """
    Moving-average path smoother with a fixed window.

    Usage:
        smoother = PathSmoother(window_size=11)
        smoothed = smoother.smooth(raw_path)
    """

    def __init__(self, window_size: int = 11):
        """
        Args:
            window_size: Odd number of samples in the averaging window
        """
        self.window_size = _check_window(window_size)
        self.half_window = self.window_size // 2

    def smooth(self, poses: Sequence[Pose]) -> List[Pose]:
        """Smooth a pose sequence (pure, restartable)."""
        return smooth_path(poses, self.window_size)
