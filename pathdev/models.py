"""
pathdev — Object Snapshot Models
================================

Pose, forecast and snapshot containers consumed by the evaluator, plus
the planar geometry helpers shared by the smoother and the deviation
metrics.

Conventions:
    - Timestamps and forecast time steps are float seconds.
    - Headings (yaw) are radians, counter-clockwise from +x.
    - All deviation geometry is 2-D (x, y); z is carried but ignored.

License: AGPL-3.0
"""

import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, Union

import numpy as np


# =============================================================================
# Geometry
# =============================================================================

def normalize_angle(angle: float) -> float:
    """
    Wrap an angle into (-pi, pi].

    Args:
        angle: Angle [rad]

    Returns:
        Equivalent angle in (-pi, pi]
    """
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def yaw_from_quaternion(qx: float, qy: float, qz: float, qw: float) -> float:
    """Extract yaw (rotation about z) from a unit quaternion."""
    siny_cosp = 2.0 * (qw * qz + qx * qy)
    cosy_cosp = 1.0 - 2.0 * (qy * qy + qz * qz)
    return math.atan2(siny_cosp, cosy_cosp)


def quaternion_from_yaw(yaw: float) -> Tuple[float, float, float, float]:
    """Unit quaternion (x, y, z, w) for a pure yaw rotation."""
    return 0.0, 0.0, math.sin(yaw / 2.0), math.cos(yaw / 2.0)


def azimuth(p: "Pose", q: "Pose") -> float:
    """Heading of the vector from p to q."""
    return math.atan2(q.y - p.y, q.x - p.x)


def distance_2d(p: "Pose", q: "Pose") -> float:
    """Planar distance between two poses."""
    return math.hypot(q.x - p.x, q.y - p.y)


def uuid_to_hex(object_id: Union[bytes, bytearray, uuid.UUID, str]) -> str:
    """
    Render an object identifier as a lowercase hex token.

    Accepts raw 16-byte UUIDs (as published by perception stacks),
    uuid.UUID instances, or strings (returned lowercased, dashes removed).
    """
    if isinstance(object_id, uuid.UUID):
        return object_id.hex
    if isinstance(object_id, (bytes, bytearray)):
        return bytes(object_id).hex()
    return str(object_id).replace("-", "").lower()


# =============================================================================
# Data Structures
# =============================================================================

class ObjectLabel(Enum):
    """Perception classification labels."""
    UNKNOWN = "unknown"
    CAR = "car"
    TRUCK = "truck"
    BUS = "bus"
    TRAILER = "trailer"
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"
    PEDESTRIAN = "pedestrian"


@dataclass
class Pose:
    """Planar pose with height."""
    x: float
    y: float
    z: float = 0.0
    yaw: float = 0.0         # [rad]

    @classmethod
    def from_quaternion(cls, x: float, y: float, z: float,
                        qx: float, qy: float, qz: float, qw: float) -> "Pose":
        """Build a pose from a position and a unit quaternion orientation."""
        return cls(x=x, y=y, z=z, yaw=yaw_from_quaternion(qx, qy, qz, qw))

    def quaternion(self) -> Tuple[float, float, float, float]:
        """Orientation as a unit quaternion (x, y, z, w)."""
        return quaternion_from_yaw(self.yaw)

    def position(self) -> np.ndarray:
        """Return [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)


@dataclass
class ForecastPath:
    """
    One forecast branch emitted with a snapshot.

    The i-th pose is the forecast for snapshot.timestamp + i * time_step.
    """
    time_step: float
    poses: List[Pose] = field(default_factory=list)
    confidence: float = 1.0

    def relative_times(self) -> np.ndarray:
        """Relative time of every pose [s]."""
        return np.arange(len(self.poses), dtype=np.float64) * self.time_step


@dataclass
class ObjectSnapshot:
    """A single object's observed pose and forecasts at one timestamp."""
    object_id: str
    timestamp: float
    pose: Pose
    forecast_paths: List[ForecastPath] = field(default_factory=list)
    label: ObjectLabel = ObjectLabel.UNKNOWN
