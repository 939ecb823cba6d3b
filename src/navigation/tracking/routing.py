# routing.py
# Contract for the external directions backend, plus a straight-line
# reference implementation used by the simulator.

import logging
from typing import List, Optional, Protocol

from .geo_utils import bearing_to_compass, calculate_bearing, coord_distance
from .models import Coord, Route, RouteStep
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


class RoutingService(Protocol):
    """
    Anything that can turn an origin/destination pair into routes.

    Implementations return the primary route first and raise
    nav_errors.RoutingError (or a subclass) when the request fails.
    An empty list means the backend found nothing.
    """

    async def route(
        self, origin: Coord, destination: Coord, want_alternatives: bool
    ) -> List[Route]:
        ...


class StraightLineRoutingService:
    """
    Direct origin → destination "route" with a depart and an arrive step.

    Args:
        config: NavConfig instance; travel_speed_kmh drives the ETA.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()

    async def route(
        self, origin: Coord, destination: Coord, want_alternatives: bool = False
    ) -> List[Route]:
        distance = coord_distance(origin, destination)
        if distance == 0:
            logger.info("Origin equals destination, no route to build.")
            return []

        bearing = calculate_bearing(origin.lat, origin.lon, destination.lat, destination.lon)
        speed_ms = self.config.travel_speed_kmh * 1000 / 3600

        steps = (
            RouteStep(
                text=f"Head {bearing_to_compass(bearing)}",
                distance_meters=distance,
                location=origin,
            ),
            RouteStep(
                text="You have reached your destination",
                distance_meters=0.0,
                location=destination,
            ),
        )
        route = Route(
            points=(origin, destination),
            steps=steps,
            total_distance_m=distance,
            expected_duration_s=distance / speed_ms,
        )
        logger.debug(f"Straight-line route: {int(distance)} m, {route.expected_duration_s:.0f} s")
        return [route]
