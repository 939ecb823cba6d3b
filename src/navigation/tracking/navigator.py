# navigator.py
# Public entry point for the navigation system.
# Owns no business logic — delegates everything to specialist modules.

import logging
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

from .heading_filter import HeadingEstimator
from .geo_utils import normalize_angle
from .models import Coord, HeadingEstimate, HeadingSample, NavigationSession, NavigationState, RouteStep
from .nav_config import NavConfig
from .nav_errors import NavigationError
from .nav_events import NavigationEvent
from .nav_logger import NavLogger
from .navigation_engine import NavigationEngine
from .routing import RoutingService

logger = logging.getLogger(__name__)


class NavigationSystem:
    """
    High-level navigation facade.

    Typical lifecycle:
        nav = NavigationSystem(routing_service)
        await nav.start_navigation(Coord(37.0, -122.0), Coord(37.01, -122.0))

        # Sensor callbacks:
        nav.update_heading(HeadingSample(timestamp=t, compass_heading=12.0))
        session = nav.update(Coord(lat, lon), course=course, speed=speed)

    Args:
        routing: Directions backend.
        config:  Optional NavConfig; defaults to NavConfig().
        clock:   Optional monotonic clock forwarded to the engine.
    """

    def __init__(
        self,
        routing: RoutingService,
        config: Optional[NavConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config or NavConfig()

        # Specialist modules
        self._engine = NavigationEngine(routing, self.config, clock=clock)
        self._heading = HeadingEstimator(config=self.config.heading)
        self._logger = NavLogger(self.config)

        self._last_position: Optional[Coord] = None
        self._last_course: Optional[float] = None
        self._last_speed: Optional[float] = None

        self._unsubscribers = [
            self._engine.subscribe(event, partial(self._on_event, event))
            for event in NavigationEvent
        ]

    @property
    def engine(self) -> NavigationEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    async def start_navigation(self, origin: Coord, destination: Coord) -> Tuple[bool, str]:
        """
        Calculate a route and begin tracking.

        Returns:
            (success, message)
        """
        try:
            route = await self._engine.calculate_route(origin, destination)
        except NavigationError as e:
            logger.warning(f"Could not start navigation: {e}")
            return False, str(e)

        if route is None:
            return False, "Route request was superseded."

        self._engine.start_navigation()
        first_instruction = route.steps[0].text if route.steps else "Follow the route"
        logger.info(f"Route ready — {len(route.steps)} steps. First: {first_instruction}")
        return True, f"Route ready. {len(route.steps)} steps."

    async def resume_navigation(self, filepath: Optional[str] = None) -> Tuple[bool, str]:
        """Restore the route saved by a previous session and keep navigating."""
        route = self._logger.load_route(filepath)
        if route is None:
            return False, "No saved route to resume."
        self._engine.restore_route(route)
        return True, f"Route restored. {len(route.steps)} steps."

    def stop_navigation(self) -> None:
        """Forcibly end the current navigation session."""
        self._engine.stop_navigation()
        logger.info("Navigation stopped by user.")

    def select_alternative_route(self, index: int) -> bool:
        return self._engine.select_alternative_route(index)

    async def aclose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self._engine.aclose()

    # ------------------------------------------------------------------
    # Sensor updates
    # ------------------------------------------------------------------

    def update(
        self,
        position: Coord,
        course: Optional[float] = None,
        speed: Optional[float] = None,
    ) -> NavigationSession:
        """
        Process a new GPS fix and return the current navigation status.

        Args:
            position: Current geographic coordinate.
            course:   GPS course over ground in degrees; negative means invalid.
            speed:    Ground speed in m/s.
        """
        self._last_position = position
        self._last_course = course
        self._last_speed = speed
        self._engine.update_location(position)
        session = self._engine.snapshot()
        self._logger.log_event(
            "location",
            {
                "state": session.state.value,
                "step": session.current_step_index,
                "distance_to_next": session.distance_to_next_step,
                "distance_from_route": session.distance_from_route,
            },
            position,
        )
        return session

    def update_heading(self, sample: HeadingSample) -> float:
        return self._heading.update_sample(sample)

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def display_heading(self) -> float:
        """GPS course while moving fast enough, the filtered heading otherwise."""
        course, speed = self._last_course, self._last_speed
        if course is not None and course >= 0 and speed is not None and speed > self.config.course_min_speed_ms:
            return normalize_angle(course)
        return self._heading.heading

    @property
    def heading_estimate(self) -> HeadingEstimate:
        return self._heading.estimate

    @property
    def state(self) -> NavigationState:
        return self._engine.state

    @property
    def is_active(self) -> bool:
        return self._engine.state in (
            NavigationState.NAVIGATING,
            NavigationState.REROUTING,
        )

    @property
    def current_step(self) -> Optional[RouteStep]:
        return self._engine.current_step

    @property
    def remaining_steps(self) -> List[RouteStep]:
        return list(self._engine.remaining_steps)

    # ------------------------------------------------------------------
    # Event recording
    # ------------------------------------------------------------------

    def _on_event(self, event: NavigationEvent, payload: Any) -> None:
        if event is NavigationEvent.ROUTE_UPDATED:
            if payload is None:
                self._logger.clear_route()
            else:
                self._logger.save_route(payload)
        self._logger.log_event(event.value, _describe(event, payload), self._last_position)


def _describe(event: NavigationEvent, payload: Any) -> Any:
    """JSON-friendly view of an event payload."""
    if event is NavigationEvent.STATE_CHANGED:
        state, reason = payload
        return {"state": state.value, "reason": str(reason) if reason else None}
    if event is NavigationEvent.ROUTE_UPDATED:
        if payload is None:
            return None
        return {
            "distance_m": payload.total_distance_m,
            "duration_s": payload.expected_duration_s,
            "steps": len(payload.steps),
        }
    if event is NavigationEvent.ARRIVED:
        return payload.to_dict()
    return payload
