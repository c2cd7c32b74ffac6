"""
pathdev — Perception Online Evaluator
=====================================

Facade tying the track store, smoother, temporal resolver and deviation
engine together. One evaluator instance owns all per-object state; the
host calls submit() once per perception tick and evaluate() on demand.

Features:
- Bounded history (retention_multiplier x largest horizon)
- Smoothed history path per object, refreshed in lockstep with the track
- Lateral, yaw and per-horizon predicted-path deviation statistics
- Warm-up aware: queries return None until a delayed comparison exists

Not thread-safe: hosts must serialize submit()/evaluate().

License: AGPL-3.0
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .filters import ObjectClassFilter
from .metrics import (DeviationEngine, ForecastMatch, Stat, LATERAL_DEVIATION,
                      PREDICTED_PATH_DEVIATION, YAW_DEVIATION)
from .models import ObjectSnapshot
from .resolver import TemporalResolver, time_delay
from .store import TrackStore

logger = logging.getLogger(__name__)


class Metric(Enum):
    """Metric kinds that can be requested from the evaluator."""
    LATERAL_DEVIATION = LATERAL_DEVIATION
    YAW_DEVIATION = YAW_DEVIATION
    PREDICTED_PATH_DEVIATION = PREDICTED_PATH_DEVIATION


@dataclass
class EvaluatorConfig:
    """
    Evaluator configuration (immutable for the evaluator lifetime).

    Args:
        prediction_time_horizons: Forecast horizons to score [s]. The
            largest one is also the look-back delay.
        smoothing_window_size: Odd moving-average window [samples]
        retention_multiplier: History is kept for this many times the
            largest horizon
        object_filter: Optional per-class filter applied on submit
    """
    prediction_time_horizons: Tuple[float, ...] = (1.0, 2.0, 3.0, 5.0)
    smoothing_window_size: int = 11
    retention_multiplier: float = 2.0
    object_filter: Optional[ObjectClassFilter] = None

    def __post_init__(self):
        horizons = tuple(sorted({float(h) for h in self.prediction_time_horizons}))
        if not horizons:
            raise ValueError("prediction_time_horizons is empty")
        if any(h <= 0.0 for h in horizons):
            raise ValueError(f"prediction_time_horizons must be positive, got {horizons}")
        self.prediction_time_horizons = horizons

        w = self.smoothing_window_size
        if int(w) != w or w < 1 or w % 2 == 0:
            raise ValueError(f"smoothing_window_size must be a positive odd integer, got {w!r}")
        self.smoothing_window_size = int(w)

        if self.retention_multiplier <= 0.0:
            raise ValueError(f"retention_multiplier must be positive, got {self.retention_multiplier}")

    @property
    def time_delay(self) -> float:
        return time_delay(self.prediction_time_horizons)

    @property
    def retention(self) -> float:
        return self.retention_multiplier * self.time_delay

    @classmethod
    def from_dict(cls, params: Mapping) -> "EvaluatorConfig":
        """
        Build from a parameter mapping (e.g. a loaded YAML file).

        An `object_parameters` entry ({label: {check_deviation: bool}})
        becomes the object class filter.
        """
        params = dict(params)
        object_params = params.pop("object_parameters", None)
        if object_params is not None:
            params["object_filter"] = ObjectClassFilter.from_object_parameters(object_params)
        if "prediction_time_horizons" in params:
            params["prediction_time_horizons"] = tuple(params["prediction_time_horizons"])
        return cls(**params)


class PerceptionEvaluator:
    """
    Online deviation evaluator for perception objects and their forecasts.

    Example:
        cfg = EvaluatorConfig(prediction_time_horizons=(5.0,), smoothing_window_size=11)
        evaluator = PerceptionEvaluator(cfg)
        for batch in batches:
            evaluator.submit(batch)
            stats = evaluator.evaluate(Metric.LATERAL_DEVIATION)
    """

    def __init__(self, config: Optional[EvaluatorConfig] = None):
        self.cfg = config if config is not None else EvaluatorConfig()
        self.store = TrackStore()
        self.resolver = TemporalResolver(self.store)
        self.engine = DeviationEngine(self.store, self.cfg.prediction_time_horizons)
        self.current_stamp: Optional[float] = None

    # -------------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------------

    def submit(self, snapshots: Iterable[ObjectSnapshot], stamp: Optional[float] = None):
        """
        Absorb one tick of object snapshots.

        Args:
            snapshots: Objects observed this tick
            stamp: Tick stamp [s]; defaults to the newest snapshot stamp.
                The evaluator clock never moves backwards, so late batches
                are stored without rewinding it.
        """
        snapshots = list(snapshots)
        if self.cfg.object_filter is not None:
            snapshots = self.cfg.object_filter.apply(snapshots)

        if stamp is None and snapshots:
            stamp = max(s.timestamp for s in snapshots)
        if stamp is not None:
            if self.current_stamp is None or stamp > self.current_stamp:
                self.current_stamp = stamp
            elif stamp < self.current_stamp:
                logger.debug("late batch t=%.3f (clock at t=%.3f)", stamp, self.current_stamp)

        touched = set()
        for s in snapshots:
            self.store.update(s.object_id, s.timestamp, s)
            touched.add(s.object_id)

        if self.current_stamp is not None:
            touched |= self.store.prune(self.current_stamp, self.cfg.retention)

        self.store.refresh_paths(self.cfg.smoothing_window_size, touched)

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    def evaluate(self, metric) -> Optional[Dict[str, Stat]]:
        """
        Compute one metric kind against the delayed target batch.

        Args:
            metric: Metric or its string value

        Returns:
            {metric_name: Stat}, or None during warm-up
        """
        if not isinstance(metric, Metric):
            metric = Metric(metric)

        if self.store.is_empty() or self.current_stamp is None:
            return None
        target = self.resolver.resolve_target(self.current_stamp, self.cfg.prediction_time_horizons)
        if target is None:
            return None
        batch = self.resolver.target_batch(target)
        if batch is None:
            return None

        if metric is Metric.LATERAL_DEVIATION:
            return self.engine.lateral_deviation_stats(batch)
        if metric is Metric.YAW_DEVIATION:
            return self.engine.yaw_deviation_stats(batch)
        return self.engine.predicted_path_deviation_stats(batch)

    def evaluate_all(self, metrics: Optional[Sequence] = None) -> Dict[str, Stat]:
        """Union of evaluate() over metrics (all kinds by default); {} during warm-up."""
        result: Dict[str, Stat] = {}
        for metric in (metrics if metrics is not None else list(Metric)):
            stats = self.evaluate(metric)
            if stats:
                result.update(stats)
        return result

    def report(self, metrics: Optional[Sequence] = None) -> Dict[str, dict]:
        """{metric_name: {count, mean, min, max}}."""
        return {name: stat.to_report() for name, stat in self.evaluate_all(metrics).items()}

    def debug_matches(self, horizon: float) -> Dict[str, ForecastMatch]:
        """Winning forecast branches from the last predicted-path evaluation."""
        return self.engine.last_matches.get(float(horizon), {})


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

def evaluate_sequence(batches: Iterable[Iterable[ObjectSnapshot]],
                      config: Optional[EvaluatorConfig] = None,
                      metrics: Optional[Sequence] = None) -> Dict[str, Stat]:
    """
    Feed a sequence of batches and evaluate once at the end.

    Args:
        batches: One iterable of snapshots per tick, in time order
        config: Evaluator configuration
        metrics: Metric kinds (default: all)

    Returns:
        {metric_name: Stat}; empty if still warming up
    """
    evaluator = PerceptionEvaluator(config)
    for batch in batches:
        evaluator.submit(batch)
    return evaluator.evaluate_all(metrics)
