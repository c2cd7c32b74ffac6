"""
pathdev — Deviation Metrics
===========================

Statistics comparing delayed object history against smoothed history
paths and previously emitted forecasts.

Metrics:
    lateral_deviation:  distance of the object from its own smoothed path,
                        perpendicular to the local path tangent
    yaw_deviation:      object heading vs. local path tangent heading
    predicted_path_deviation_<h>:
                        2-D error of the best forecast branch over the
                        first h seconds, scored against observed history

Missing history is never approximated: forecast poses without a matching
observation are skipped, objects without a smoothed path are left out.

License: AGPL-3.0
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .models import ObjectSnapshot, Pose, normalize_angle
from .resolver import TargetBatch
from .store import TrackStore

logger = logging.getLogger(__name__)

LATERAL_DEVIATION = "lateral_deviation"
YAW_DEVIATION = "yaw_deviation"
PREDICTED_PATH_DEVIATION = "predicted_path_deviation"

# Per-object errors that only invalidate that object's contribution
_OBJECT_ERRORS = (ValueError, TypeError, IndexError, KeyError, ZeroDivisionError)


def predicted_path_metric_name(horizon: float) -> str:
    """Metric name for one horizon, e.g. predicted_path_deviation_5.00."""
    return f"{PREDICTED_PATH_DEVIATION}_{horizon:.2f}"


# =============================================================================
# Statistics
# =============================================================================

class Stat:
    """
    Running scalar statistics (count, sum, sum of squares, min, max).

    Add-only while accumulating; freeze() returns an immutable copy.
    """

    def __init__(self):
        self.count = 0
        self.sum = 0.0
        self.sum_sq = 0.0
        self.min = math.inf
        self.max = -math.inf
        self._frozen = False

    def add(self, value: float):
        if self._frozen:
            raise RuntimeError("Stat is frozen")
        value = float(value)
        self.count += 1
        self.sum += value
        self.sum_sq += value * value
        self.min = min(self.min, value)
        self.max = max(self.max, value)

    def extend(self, values: Iterable[float]):
        for v in values:
            self.add(v)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "Stat":
        """Immutable copy of the current state."""
        out = Stat()
        out.count, out.sum, out.sum_sq = self.count, self.sum, self.sum_sq
        out.min, out.max = self.min, self.max
        out._frozen = True
        return out

    def mean(self) -> float:
        return self.sum / self.count if self.count else 0.0

    def std(self) -> float:
        if not self.count:
            return 0.0
        var = self.sum_sq / self.count - self.mean() ** 2
        return math.sqrt(max(var, 0.0))

    def to_report(self) -> dict:
        """Shape consumed by diagnostics/dashboards; min/max are None when empty."""
        return {
            'count': self.count,
            'mean': self.mean(),
            'min': self.min if self.count else None,
            'max': self.max if self.count else None,
        }

    def to_dict(self) -> dict:
        report = self.to_report()
        report['std'] = self.std()
        return report

    def __repr__(self) -> str:
        return (f"Stat(count={self.count}, mean={self.mean():.4f}, "
                f"min={self.min:.4f}, max={self.max:.4f})")


# =============================================================================
# Path geometry
# =============================================================================

def nearest_segment(path: Sequence[Pose], pose: Pose) -> int:
    """
    Index of the path segment [k, k+1] closest to `pose` (first on ties).

    A single-point path returns 0.
    """
    if len(path) < 2:
        return 0

    pts = np.array([[p.x, p.y] for p in path], dtype=np.float64)
    a, b = pts[:-1], pts[1:]
    ab = b - a
    ap = np.array([pose.x, pose.y]) - a

    seg_len_sq = np.einsum('ij,ij->i', ab, ab)
    t = np.divide(np.einsum('ij,ij->i', ap, ab), seg_len_sq,
                  out=np.zeros_like(seg_len_sq), where=seg_len_sq > 0.0)
    t = np.clip(t, 0.0, 1.0)

    diff = ap - t[:, None] * ab
    return int(np.argmin(np.einsum('ij,ij->i', diff, diff)))


def signed_lateral_offset(path: Sequence[Pose], pose: Pose) -> float:
    """
    Signed offset of `pose` from the path, perpendicular to the nearest
    segment (left of travel direction is positive).

    A single-point path or a zero-length segment falls back to the
    heading stored on the segment's start pose.
    """
    if not path:
        raise ValueError("empty reference path")
    k = nearest_segment(path, pose)
    base = path[k]
    dx, dy = pose.x - base.x, pose.y - base.y
    if k + 1 < len(path):
        sx, sy = path[k + 1].x - base.x, path[k + 1].y - base.y
        length = math.hypot(sx, sy)
        if length > 0.0:
            return (sx * dy - sy * dx) / length
    return math.cos(base.yaw) * dy - math.sin(base.yaw) * dx


def signed_yaw_offset(path: Sequence[Pose], pose: Pose) -> float:
    """Object heading minus local tangent heading, in (-pi, pi]."""
    if not path:
        raise ValueError("empty reference path")
    base = path[nearest_segment(path, pose)]
    return normalize_angle(pose.yaw - base.yaw)


def lateral_deviation(path: Sequence[Pose], pose: Pose) -> float:
    return abs(signed_lateral_offset(path, pose))


def yaw_deviation(path: Sequence[Pose], pose: Pose) -> float:
    return abs(signed_yaw_offset(path, pose))


# =============================================================================
# Forecast scoring
# =============================================================================

@dataclass
class ForecastMatch:
    """Winning forecast branch of one object for one horizon."""
    object_id: str
    path_index: int
    deviations: List[float] = field(default_factory=list)
    pairs: List[Tuple[Pose, Pose]] = field(default_factory=list)  # (forecast, observed)
    snapshot: Optional[ObjectSnapshot] = None

    @property
    def total(self) -> float:
        return float(sum(self.deviations))


def select_best_branch(deviations: Dict[int, List[float]]) -> Optional[int]:
    """
    Branch index with the minimum summed deviation.

    Branches without samples are ineligible; the lowest index wins ties.
    """
    best_index, best_sum = None, math.inf
    for index in sorted(deviations):
        samples = deviations[index]
        if not samples:
            continue
        total = sum(samples)
        if total < best_sum:
            best_index, best_sum = index, total
    return best_index


class DeviationEngine:
    """
    Computes deviation statistics for a resolved target batch.

    Stateless across calls apart from the store it reads and the debug
    record of the last forecast matches.
    """

    def __init__(self, store: TrackStore, horizons: Sequence[float]):
        self.store = store
        self.horizons = tuple(horizons)
        self.last_matches: Dict[float, Dict[str, ForecastMatch]] = {}

    # -------------------------------------------------------------------------
    # Lateral / yaw
    # -------------------------------------------------------------------------

    def _path_stat(self, batch: TargetBatch, fn) -> Stat:
        stat = Stat()
        for obj in batch.objects:
            if not self.store.has_history_until(obj.object_id, batch.target):
                continue
            path = self.store.smoothed_path(obj.object_id)
            if not path:
                continue
            try:
                stat.add(fn(path, obj.pose))
            except _OBJECT_ERRORS as exc:
                logger.warning("skipping object %s: %s", obj.object_id, exc)
        return stat.freeze()

    def lateral_deviation_stats(self, batch: TargetBatch) -> Dict[str, Stat]:
        return {LATERAL_DEVIATION: self._path_stat(batch, lateral_deviation)}

    def yaw_deviation_stats(self, batch: TargetBatch) -> Dict[str, Stat]:
        return {YAW_DEVIATION: self._path_stat(batch, yaw_deviation)}

    # -------------------------------------------------------------------------
    # Predicted path
    # -------------------------------------------------------------------------

    def _branch_deviations(self, obj: ObjectSnapshot, horizon: float
                           ) -> Tuple[Dict[int, List[float]], Dict[int, List[Tuple[Pose, Pose]]]]:
        """Observed-vs-forecast distances per branch within the horizon."""
        deviations: Dict[int, List[float]] = {}
        pairs: Dict[int, List[Tuple[Pose, Pose]]] = {}

        for i, forecast in enumerate(obj.forecast_paths):
            deviations[i], pairs[i] = [], []
            for j, predicted in enumerate(forecast.poses):
                dt = forecast.time_step * j
                # forecast poses are ordered by relative time
                if dt > horizon:
                    break
                stamp = obj.timestamp + dt
                if not self.store.has_history_until(obj.object_id, stamp):
                    continue
                observed = self.store.sample_at(obj.object_id, stamp)
                if observed is None:
                    continue
                d = math.hypot(predicted.x - observed.pose.x, predicted.y - observed.pose.y)
                deviations[i].append(d)
                pairs[i].append((predicted, observed.pose))

        return deviations, pairs

    def horizon_stat(self, batch: TargetBatch, horizon: float) -> Stat:
        """Predicted-path deviation statistic for one horizon."""
        stat = Stat()
        matches: Dict[str, ForecastMatch] = {}

        for obj in batch.objects:
            try:
                deviations, pairs = self._branch_deviations(obj, horizon)
            except _OBJECT_ERRORS as exc:
                logger.warning("skipping forecasts of %s: %s", obj.object_id, exc)
                continue

            best = select_best_branch(deviations)
            if best is None:
                continue

            matches[obj.object_id] = ForecastMatch(
                object_id=obj.object_id,
                path_index=best,
                deviations=deviations[best],
                pairs=pairs[best],
                snapshot=obj,
            )
            stat.extend(deviations[best])

        self.last_matches[horizon] = matches
        return stat.freeze()

    def predicted_path_deviation_stats(self, batch: TargetBatch) -> Dict[str, Stat]:
        return {predicted_path_metric_name(h): self.horizon_stat(batch, h)
                for h in self.horizons}
