# models.py
# Shared data structures and enums used across all modules.

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float

    def is_valid(self) -> bool:
        """True when both values are finite and inside WGS84 ranges."""
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            return False
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lon <= 180.0

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}

    @staticmethod
    def from_dict(d: dict) -> "Coord":
        return Coord(float(d["lat"]), float(d["lon"]))


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteStep:
    """A single navigation instruction in a route."""
    text: str
    distance_meters: float
    location: Coord              # anchor point used for step advance

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "distance_meters": self.distance_meters,
            "location": self.location.to_dict(),
        }

    @staticmethod
    def from_dict(d: dict) -> "RouteStep":
        return RouteStep(
            text=d["text"],
            distance_meters=float(d["distance_meters"]),
            location=Coord.from_dict(d["location"]),
        )


@dataclass(frozen=True)
class Route:
    """
    A planned path returned by the routing service.

    Routes are never mutated; a reroute replaces the whole object.
    """
    points: Tuple[Coord, ...]
    steps: Tuple[RouteStep, ...]
    total_distance_m: float
    expected_duration_s: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.points:
            raise ValueError("Route needs at least one point.")

    @property
    def destination(self) -> Coord:
        return self.points[-1]

    def to_dict(self) -> dict:
        return {
            "points": [p.to_dict() for p in self.points],
            "steps": [s.to_dict() for s in self.steps],
            "total_distance_m": self.total_distance_m,
            "expected_duration_s": self.expected_duration_s,
        }

    @staticmethod
    def from_dict(d: dict) -> "Route":
        return Route(
            points=tuple(Coord.from_dict(p) for p in d["points"]),
            steps=tuple(RouteStep.from_dict(s) for s in d["steps"]),
            total_distance_m=float(d["total_distance_m"]),
            expected_duration_s=float(d["expected_duration_s"]),
        )


# ---------------------------------------------------------------------------
# Heading
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HeadingSample:
    """One reading from the orientation sensors. Either value may be missing."""
    timestamp: float
    compass_heading: Optional[float] = None   # degrees, 0 = north
    angular_rate: Optional[float] = None      # rad/s around the vertical axis


@dataclass(frozen=True)
class HeadingEstimate:
    heading_degrees: float                    # [0, 360)
    angular_velocity_deg_s: float
    confidence: float                         # [0, 1]


# ---------------------------------------------------------------------------
# Navigation status
# ---------------------------------------------------------------------------

class NavigationState(Enum):
    IDLE        = "idle"
    CALCULATING = "calculating"
    NAVIGATING  = "navigating"
    REROUTING   = "rerouting"
    ARRIVED     = "arrived"
    FAILED      = "failed"


@dataclass
class NavigationSession:
    """
    Aggregate state of one navigation session.

    Only NavigationEngine writes to it; everyone else gets a copy from
    NavigationEngine.snapshot().
    """
    state: NavigationState = NavigationState.IDLE
    failure_reason: Optional[Exception] = None
    route: Optional[Route] = None
    alternatives: List[Route] = field(default_factory=list)
    current_step_index: int = 0
    last_known_location: Optional[Coord] = None
    last_reroute_at: Optional[float] = None
    route_started_at: Optional[float] = None
    distance_to_next_step: float = 0.0
    distance_from_route: Optional[float] = None
    estimated_time_remaining_s: float = 0.0
    estimated_arrival_time: Optional[datetime] = None

    @property
    def current_step(self) -> Optional[RouteStep]:
        if self.route is None:
            return None
        if 0 <= self.current_step_index < len(self.route.steps):
            return self.route.steps[self.current_step_index]
        return None

    @property
    def remaining_steps(self) -> Sequence[RouteStep]:
        if self.route is None:
            return ()
        return self.route.steps[self.current_step_index:]
