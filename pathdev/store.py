"""
pathdev — Track Store
=====================

Bounded, time-indexed snapshot history per tracked object.

Each Track keeps its timestamps in a sorted list (bisect lookup) next to
a stamp -> snapshot dict. The store also owns the raw and smoothed
history paths derived from each track; they are refreshed whenever the
track changes and dropped together with it.

License: AGPL-3.0
"""

import bisect
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .models import ObjectSnapshot, Pose
from .smoother import smooth_path

logger = logging.getLogger(__name__)


class Track:
    """Time-ordered snapshot history of one object."""

    def __init__(self, object_id: str):
        self.object_id = object_id
        self._stamps: List[float] = []
        self._entries: Dict[float, ObjectSnapshot] = {}

    def __len__(self) -> int:
        return len(self._stamps)

    def __iter__(self) -> Iterator[Tuple[float, ObjectSnapshot]]:
        for stamp in self._stamps:
            yield stamp, self._entries[stamp]

    def insert(self, stamp: float, snapshot: ObjectSnapshot):
        """Insert, or overwrite the entry at an identical stamp."""
        if stamp not in self._entries:
            bisect.insort(self._stamps, stamp)
        self._entries[stamp] = snapshot

    def drop_before(self, cutoff: float) -> int:
        """Remove entries strictly older than cutoff; returns how many."""
        n = bisect.bisect_left(self._stamps, cutoff)
        for stamp in self._stamps[:n]:
            del self._entries[stamp]
        del self._stamps[:n]
        return n

    @property
    def oldest(self) -> Optional[float]:
        return self._stamps[0] if self._stamps else None

    @property
    def newest(self) -> Optional[float]:
        return self._stamps[-1] if self._stamps else None

    def stamps(self) -> List[float]:
        return list(self._stamps)

    def get(self, stamp: float) -> Optional[ObjectSnapshot]:
        return self._entries.get(stamp)

    def bracket(self, stamp: float) -> Tuple[Optional[float], Optional[float]]:
        """
        Entries on both sides of stamp.

        Returns:
            (lower, upper): the last stamp before `stamp` and the first
            stamp at or after it; either may be None.
        """
        i = bisect.bisect_left(self._stamps, stamp)
        lower = self._stamps[i - 1] if i > 0 else None
        upper = self._stamps[i] if i < len(self._stamps) else None
        return lower, upper

    def poses(self) -> List[Pose]:
        return [self._entries[s].pose for s in self._stamps]


def closest_timestamp(tracks: Iterable[Track], stamp: float) -> Optional[float]:
    """
    Single stored timestamp nearest to `stamp` across all tracks.

    Every track contributes the entries bracketing `stamp`; the global
    minimum absolute difference wins, ties going to the later timestamp.

    Returns:
        The winning timestamp, or None when no track holds any entry
    """
    best: Optional[Tuple[float, float]] = None
    for track in tracks:
        for candidate in track.bracket(stamp):
            if candidate is None:
                continue
            key = (abs(candidate - stamp), -candidate)
            if best is None or key < best:
                best = key
    return None if best is None else -best[1]


class TrackStore:
    """
    Per-object snapshot histories with derived history paths.

    Usage:
        store = TrackStore()
        store.update(obj.object_id, obj.timestamp, obj)
        touched = store.prune(now, retention=10.0)
        store.refresh_paths(window_size=11, object_ids=touched)
    """

    def __init__(self):
        self._tracks: Dict[str, Track] = {}
        self._raw_paths: Dict[str, List[Pose]] = {}
        self._smoothed_paths: Dict[str, List[Pose]] = {}

    def __len__(self) -> int:
        return len(self._tracks)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._tracks

    def is_empty(self) -> bool:
        return not self._tracks

    def object_ids(self) -> List[str]:
        return list(self._tracks)

    def tracks(self) -> List[Track]:
        return list(self._tracks.values())

    def track(self, object_id: str) -> Track:
        """Track of a known object (KeyError when unknown)."""
        return self._tracks[object_id]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def update(self, object_id: str, stamp: float, snapshot: ObjectSnapshot):
        """Insert or overwrite one object's snapshot at `stamp`."""
        track = self._tracks.get(object_id)
        if track is None:
            track = Track(object_id)
            self._tracks[object_id] = track
            logger.debug("new track %s at t=%.3f", object_id, stamp)
        track.insert(stamp, snapshot)

    def prune(self, now: float, retention: float) -> Set[str]:
        """
        Drop entries older than now - retention.

        Objects left without entries are erased along with their paths.

        Returns:
            Ids of surviving objects whose history changed
        """
        cutoff = now - retention
        changed: Set[str] = set()
        for object_id, track in list(self._tracks.items()):
            if track.drop_before(cutoff) == 0:
                continue
            if len(track) == 0:
                self._erase(object_id)
                logger.debug("track %s expired before t=%.3f", object_id, cutoff)
            else:
                changed.add(object_id)
        return changed

    def _erase(self, object_id: str):
        del self._tracks[object_id]
        self._raw_paths.pop(object_id, None)
        self._smoothed_paths.pop(object_id, None)

    def refresh_paths(self, window_size: int, object_ids: Optional[Iterable[str]] = None):
        """Recompute raw and smoothed history paths (all objects by default)."""
        ids = self._tracks.keys() if object_ids is None else object_ids
        for object_id in list(ids):
            track = self._tracks.get(object_id)
            if track is None:
                continue
            raw = track.poses()
            self._raw_paths[object_id] = raw
            self._smoothed_paths[object_id] = smooth_path(raw, window_size)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def raw_path(self, object_id: str) -> List[Pose]:
        return self._raw_paths.get(object_id, [])

    def smoothed_path(self, object_id: str) -> List[Pose]:
        return self._smoothed_paths.get(object_id, [])

    def oldest_timestamp(self) -> Optional[float]:
        """Earliest retained stamp over all objects."""
        stamps = [t.oldest for t in self._tracks.values() if len(t)]
        return min(stamps) if stamps else None

    def closest_timestamp(self, stamp: float) -> Optional[float]:
        """See module-level closest_timestamp()."""
        return closest_timestamp(self._tracks.values(), stamp)

    def sample_at(self, object_id: str, stamp: float) -> Optional[ObjectSnapshot]:
        """
        Object's entry at the globally resolved instant nearest `stamp`.

        All objects queried for the same `stamp` are therefore compared at
        one synchronized instant. Returns None when this object has no
        entry at exactly that instant.
        """
        track = self._tracks.get(object_id)
        if track is None:
            return None
        resolved = self.closest_timestamp(stamp)
        if resolved is None:
            return None
        return track.get(resolved)

    def has_history_until(self, object_id: str, stamp: float) -> bool:
        """True iff the object's oldest entry is at or before `stamp`."""
        track = self._tracks.get(object_id)
        if track is None or len(track) == 0:
            return False
        return track.oldest <= stamp
