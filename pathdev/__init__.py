"""
pathdev — Perception Path Deviation Evaluator
=============================================

Online evaluation of perception objects against their own delayed
history: smoothed-path lateral/yaw deviation and forecast (predicted
path) error per horizon.

Modules:
    evaluator: PerceptionEvaluator facade and EvaluatorConfig
    store: bounded per-object snapshot history
    smoother: moving-average history path smoothing
    resolver: delayed target instant resolution
    metrics: Stat accumulator and deviation metrics
    filters: per-class object filter

Example:
    >>> from pathdev import PerceptionEvaluator, EvaluatorConfig, Metric
    >>> cfg = EvaluatorConfig(prediction_time_horizons=(5.0,), smoothing_window_size=11)
    >>> evaluator = PerceptionEvaluator(cfg)
    >>> evaluator.submit(snapshots)
    >>> stats = evaluator.evaluate(Metric.PREDICTED_PATH_DEVIATION)

License: AGPL-3.0
Version: 0.1.0
"""

__version__ = "0.1.0"

from .evaluator import PerceptionEvaluator, EvaluatorConfig, Metric, evaluate_sequence
from .filters import ObjectClassFilter
from .metrics import Stat, ForecastMatch, DeviationEngine, predicted_path_metric_name
from .models import Pose, ForecastPath, ObjectSnapshot, ObjectLabel, uuid_to_hex
from .resolver import TemporalResolver, TargetBatch
from .smoother import PathSmoother, smooth_path
from .store import TrackStore, Track, closest_timestamp

__all__ = [
    "PerceptionEvaluator",
    "EvaluatorConfig",
    "Metric",
    "evaluate_sequence",
    "ObjectClassFilter",
    "Stat",
    "ForecastMatch",
    "DeviationEngine",
    "predicted_path_metric_name",
    "Pose",
    "ForecastPath",
    "ObjectSnapshot",
    "ObjectLabel",
    "uuid_to_hex",
    "TemporalResolver",
    "TargetBatch",
    "PathSmoother",
    "smooth_path",
    "TrackStore",
    "Track",
    "closest_timestamp",
]
