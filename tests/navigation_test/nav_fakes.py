"""Fakes and geometry helpers shared by the navigation tests."""

import asyncio
import math
from typing import List, Optional

from navigation.tracking.geo_utils import EARTH_RADIUS_M
from navigation.tracking.models import Coord, Route, RouteStep


ORIGIN = Coord(37.0, -122.0)
DESTINATION = Coord(37.01, -122.0)
MIDPOINT = Coord(37.005, -122.0)


def east_of(coord: Coord, metres: float) -> Coord:
    d_lon = math.degrees(metres / (EARTH_RADIUS_M * math.cos(math.radians(coord.lat))))
    return Coord(coord.lat, coord.lon + d_lon)


def north_of(coord: Coord, metres: float) -> Coord:
    return Coord(coord.lat + math.degrees(metres / EARTH_RADIUS_M), coord.lon)


def make_route(*points: Coord, duration: float = 120.0) -> Route:
    steps = [RouteStep(text=f"Step {i}", distance_meters=0.0, location=p) for i, p in enumerate(points)]
    return Route(points=points, steps=steps, total_distance_m=1000.0, expected_duration_s=duration)


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeRoutingService:
    """Returns scripted routes, records every request."""

    def __init__(self, routes: Optional[List[Route]] = None) -> None:
        self.routes = routes if routes is not None else [make_route(ORIGIN, DESTINATION)]
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    def block(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def route(self, origin, destination, want_alternatives):
        self.calls.append((origin, destination, want_alternatives))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.routes)


