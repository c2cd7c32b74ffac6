"""
pathdev — Temporal Resolver
===========================

Resolves the delayed comparison instant shared by all objects in a query.

Forecasts emitted at time T can only be scored once the object has been
observed up to T + horizon, so every query looks back by the largest
configured horizon. The look-back target is recomputed on each query
because object histories are pruned independently.

License: AGPL-3.0
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .models import ObjectSnapshot
from .store import TrackStore

logger = logging.getLogger(__name__)


def time_delay(horizons: Iterable[float]) -> float:
    """Look-back delay: the largest prediction horizon."""
    horizons = list(horizons)
    if not horizons:
        raise ValueError("prediction_time_horizons is empty")
    return max(horizons)


@dataclass
class TargetBatch:
    """Snapshots of every object present at one resolved instant."""
    target: float                 # requested look-back instant
    stamp: float                  # stored timestamp nearest to target
    objects: List[ObjectSnapshot] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.objects)


class TemporalResolver:
    """
    Look-back target resolution over a TrackStore.

    Usage:
        resolver = TemporalResolver(store)
        target = resolver.resolve_target(now, horizons)
        if target is not None:
            batch = resolver.target_batch(target)
    """

    def __init__(self, store: TrackStore):
        self.store = store

    def resolve_target(self, now: float, horizons: Iterable[float]) -> Optional[float]:
        """
        Delayed target instant, or None while warming up.

        Args:
            now: Current stamp [s]
            horizons: Configured prediction horizons [s]

        Returns:
            now - max(horizons), or None if no tracked history reaches
            back that far
        """
        target = now - time_delay(horizons)
        oldest = self.store.oldest_timestamp()
        if oldest is None:
            logger.debug("no tracked history at t=%.3f", now)
            return None
        if oldest > target:
            logger.debug("warm-up: oldest entry t=%.3f is after target t=%.3f", oldest, target)
            return None
        return target

    def target_batch(self, target: float) -> Optional[TargetBatch]:
        """
        Collect all objects' snapshots at the stored instant nearest target.

        Objects without an entry at exactly that instant are left out.
        """
        stamp = self.store.closest_timestamp(target)
        if stamp is None:
            return None
        objects = []
        for track in self.store.tracks():
            snapshot = track.get(stamp)
            if snapshot is not None:
                objects.append(snapshot)
        return TargetBatch(target=target, stamp=stamp, objects=objects)
