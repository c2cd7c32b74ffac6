"""
pathdev — Deviation Metric Tests
"""
import math

import numpy as np
import pytest

from pathdev import ForecastPath, ObjectSnapshot, Pose, Stat, TrackStore, smooth_path
from pathdev.metrics import (DeviationEngine, lateral_deviation, nearest_segment,
                             predicted_path_metric_name, select_best_branch,
                             signed_lateral_offset, signed_yaw_offset, yaw_deviation)
from pathdev.models import normalize_angle, quaternion_from_yaw, uuid_to_hex
from pathdev.resolver import TargetBatch


def x_axis_path(n=5):
    return [Pose(x=float(i), y=0.0, yaw=0.0) for i in range(n)]


class TestStat:
    """Running statistics."""

    def test_empty(self):
        stat = Stat()
        assert stat.count == 0
        assert stat.mean() == 0.0
        assert stat.std() == 0.0

    def test_moments(self):
        values = [1.0, 2.0, 4.0, 7.0]
        stat = Stat()
        stat.extend(values)
        assert stat.count == 4
        assert stat.mean() == pytest.approx(np.mean(values))
        assert stat.std() == pytest.approx(np.std(values))
        assert (stat.min, stat.max) == (1.0, 7.0)

    def test_report_shape(self):
        stat = Stat()
        stat.add(3.0)
        assert stat.to_report() == {'count': 1, 'mean': 3.0, 'min': 3.0, 'max': 3.0}
        assert stat.to_dict()['std'] == 0.0

    def test_empty_report_has_no_extremes(self):
        report = Stat().freeze().to_report()
        assert report == {'count': 0, 'mean': 0.0, 'min': None, 'max': None}

    def test_frozen_is_immutable(self):
        stat = Stat()
        stat.add(1.0)
        frozen = stat.freeze()
        assert frozen.frozen
        with pytest.raises(RuntimeError):
            frozen.add(2.0)
        stat.add(5.0)
        assert frozen.count == 1


class TestPathGeometry:
    """Lateral and yaw offsets against a polyline."""

    def test_nearest_segment(self):
        path = x_axis_path()
        assert nearest_segment(path, Pose(2.4, 1.0)) == 2
        assert nearest_segment(path, Pose(-3.0, 0.0)) == 0
        assert nearest_segment(path, Pose(9.0, 0.0)) == 3
        assert nearest_segment(path[:1], Pose(9.0, 0.0)) == 0

    def test_lateral_sign(self):
        path = x_axis_path()
        assert signed_lateral_offset(path, Pose(2.5, 1.5)) == pytest.approx(1.5)
        assert signed_lateral_offset(path, Pose(2.5, -0.5)) == pytest.approx(-0.5)
        assert lateral_deviation(path, Pose(2.5, -0.5)) == pytest.approx(0.5)

    def test_lateral_on_rotated_path(self):
        theta = 0.6
        path = [Pose(x=i * math.cos(theta), y=i * math.sin(theta), yaw=theta) for i in range(6)]
        # 2 units along the path, 0.8 to its left
        p = Pose(x=2 * math.cos(theta) - 0.8 * math.sin(theta),
                 y=2 * math.sin(theta) + 0.8 * math.cos(theta))
        assert signed_lateral_offset(path, p) == pytest.approx(0.8)

    def test_lateral_uses_segment_not_held_heading(self):
        """Slow L-shaped track: headings stay held at 0 on the +y leg."""
        raw = [Pose(x=0.05 * i, y=0.0) for i in range(21)]
        raw += [Pose(x=1.0, y=0.05 * i) for i in range(1, 41)]
        path = smooth_path(raw, 1)
        assert path[30].yaw == pytest.approx(0.0)
        assert signed_lateral_offset(path, Pose(1.3, 1.5)) == pytest.approx(-0.3)
        assert lateral_deviation(path, Pose(0.75, 1.5)) == pytest.approx(0.25)

    def test_lateral_zero_length_segment_uses_heading(self):
        path = [Pose(0.0, 0.0, yaw=math.pi / 2), Pose(0.0, 0.0, yaw=math.pi / 2)]
        assert signed_lateral_offset(path, Pose(1.0, 0.0)) == pytest.approx(-1.0)
        assert signed_lateral_offset(path[:1], Pose(-2.0, 0.0)) == pytest.approx(2.0)

    def test_yaw_normalized(self):
        path = x_axis_path()
        assert signed_yaw_offset(path, Pose(1.0, 0.0, yaw=0.3)) == pytest.approx(0.3)
        assert signed_yaw_offset(path, Pose(1.0, 0.0, yaw=2 * math.pi - 0.3)) == pytest.approx(-0.3)
        assert yaw_deviation(path, Pose(1.0, 0.0, yaw=-0.3)) == pytest.approx(0.3)

    def test_rotation_shift(self):
        """Rotating the object by theta shifts the yaw offset by theta (mod 2pi)."""
        path = x_axis_path()
        base = signed_yaw_offset(path, Pose(1.0, 0.0, yaw=0.2))
        for theta in (0.5, 2.0, 3.0, -2.5):
            shifted = signed_yaw_offset(path, Pose(1.0, 0.0, yaw=0.2 + theta))
            assert shifted == pytest.approx(normalize_angle(base + theta))

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            lateral_deviation([], Pose(0.0, 0.0))


class TestForecastSelection:

    def test_min_sum_wins(self):
        assert select_best_branch({0: [1.0, 1.0], 1: [0.5, 0.2], 2: [3.0]}) == 1

    def test_empty_branches_ineligible(self):
        assert select_best_branch({0: [], 1: [4.0]}) == 1
        assert select_best_branch({0: [], 1: []}) is None
        assert select_best_branch({}) is None

    def test_tie_lowest_index(self):
        assert select_best_branch({2: [1.0], 1: [1.0]}) == 1

    def test_metric_name(self):
        assert predicted_path_metric_name(5.0) == "predicted_path_deviation_5.00"
        assert predicted_path_metric_name(2.5) == "predicted_path_deviation_2.50"


class TestDeviationEngine:
    """Forecast scoring with gaps in observed history."""

    @staticmethod
    def build(stamps, forecast_offsets, other_stamps=()):
        store = TrackStore()
        for t in stamps:
            store.update("obj", t, ObjectSnapshot("obj", t, Pose(x=t, y=0.0)))
        for t in other_stamps:
            store.update("other", t, ObjectSnapshot("other", t, Pose(x=t, y=9.0)))
        store.refresh_paths(3)
        paths = [ForecastPath(time_step=1.0, poses=[Pose(x=float(i), y=off) for i in range(6)])
                 for off in forecast_offsets]
        origin = ObjectSnapshot("obj", 0.0, Pose(0.0, 0.0), forecast_paths=paths)
        store.update("obj", 0.0, origin)
        batch = TargetBatch(target=0.0, stamp=0.0, objects=[origin])
        return DeviationEngine(store, (3.0,)), batch

    def test_gap_snaps_to_nearest_stamp(self):
        engine, batch = self.build([0.0, 1.0, 3.0, 4.0, 5.0], [1.0])
        stat = engine.predicted_path_deviation_stats(batch)["predicted_path_deviation_3.00"]
        # t=2 resolves to t=3 (tie goes to the later stamp)
        assert stat.count == 4
        assert stat.max == pytest.approx(math.sqrt(2.0))

    def test_missing_history_is_skipped(self):
        """The instant t=2 belongs to another object only: no sample, not zero."""
        engine, batch = self.build([0.0, 1.0, 3.0, 4.0, 5.0], [1.0], other_stamps=[2.0])
        stat = engine.horizon_stat(batch, 3.0)
        assert stat.count == 3
        assert stat.mean() == pytest.approx(1.0)

    def test_horizon_stops_walk(self):
        engine, batch = self.build([0.0, 1.0, 2.0, 3.0, 4.0, 5.0], [0.0])
        stat = engine.horizon_stat(batch, 3.0)
        assert stat.count == 4
        assert stat.mean() == pytest.approx(0.0)

    def test_debug_match_recorded(self):
        engine, batch = self.build([0.0, 1.0, 2.0, 3.0], [2.0, 0.5])
        engine.horizon_stat(batch, 3.0)
        match = engine.last_matches[3.0]["obj"]
        assert match.path_index == 1
        assert match.total == pytest.approx(2.0)
        assert match.snapshot is batch.objects[0]

    def test_objects_without_path_skipped(self):
        store = TrackStore()
        obj = ObjectSnapshot("obj", 0.0, Pose(0.0, 0.0))
        store.update("obj", 0.0, obj)
        engine = DeviationEngine(store, (1.0,))
        batch = TargetBatch(target=0.0, stamp=0.0, objects=[obj])
        assert engine.lateral_deviation_stats(batch)["lateral_deviation"].count == 0


class TestModels:

    def test_pose_quaternion_roundtrip(self):
        for yaw in (0.0, 0.4, -2.0, math.pi):
            qx, qy, qz, qw = quaternion_from_yaw(yaw)
            pose = Pose.from_quaternion(1.0, 2.0, 0.0, qx, qy, qz, qw)
            assert normalize_angle(pose.yaw - yaw) == pytest.approx(0.0, abs=1e-9)

    def test_normalize_angle_range(self):
        assert normalize_angle(math.pi) == pytest.approx(math.pi)
        assert normalize_angle(-math.pi) == pytest.approx(math.pi)
        assert normalize_angle(3 * math.pi / 2) == pytest.approx(-math.pi / 2)

    def test_uuid_to_hex(self):
        raw = bytes(range(16))
        assert uuid_to_hex(raw) == "000102030405060708090a0b0c0d0e0f"
        assert uuid_to_hex("ABCD-EF") == "abcdef"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
