# navigation_engine.py
# Route-tracking state machine: owns the active route, decides when the
# user is off route, when to ask for a new one and when they have arrived.
#
# The engine is an asyncio actor. Every mutating call must run on the
# thread that owns the event loop; the routing call is the only await.

import asyncio
import dataclasses
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Set

from .geo_utils import coord_distance, min_distance_to_route
from .models import Coord, NavigationSession, NavigationState, Route, RouteStep
from .nav_config import NavConfig
from .nav_errors import (
    InvalidLocationError,
    NavigationError,
    NoRouteFoundError,
    RoutingError,
    RoutingTransportError,
)
from .nav_events import EventBus, Listener, NavigationEvent
from .routing import RoutingService

logger = logging.getLogger(__name__)


class NavigationEngine:
    """
    Stateful navigation session driven by location updates.

    Lifecycle:
        engine = NavigationEngine(routing_service, config)
        await engine.calculate_route(origin, destination)   # → IDLE, route stored
        engine.start_navigation()                            # → NAVIGATING

        # Inside the location callback:
        engine.update_location(coord)

        engine.stop_navigation()                             # → IDLE

    Args:
        routing: Directions backend (see routing.RoutingService).
        config:  Optional NavConfig; defaults to NavConfig().
        clock:   Monotonic seconds source, time.monotonic by default.
        events:  EventBus to publish on; a private one is created if omitted.
    """

    def __init__(
        self,
        routing: RoutingService,
        config: Optional[NavConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._routing = routing
        self._clock = clock or time.monotonic
        self._events = events or EventBus()
        self._session = NavigationSession()

        # Bumped whenever an in-flight routing response must be ignored.
        self._generation = 0
        self._is_rerouting = False
        self._tick_task: Optional[asyncio.Task] = None
        self._reroute_tasks: Set[asyncio.Task] = set()
        self._owner_thread: Optional[int] = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> NavigationState:
        return self._session.state

    @property
    def failure_reason(self) -> Optional[Exception]:
        return self._session.failure_reason

    @property
    def current_route(self) -> Optional[Route]:
        return self._session.route

    @property
    def alternative_routes(self) -> List[Route]:
        return list(self._session.alternatives)

    @property
    def current_step_index(self) -> int:
        return self._session.current_step_index

    @property
    def current_step(self) -> Optional[RouteStep]:
        return self._session.current_step

    @property
    def remaining_steps(self) -> Sequence[RouteStep]:
        return self._session.remaining_steps

    @property
    def distance_to_next_step(self) -> float:
        return self._session.distance_to_next_step

    @property
    def distance_from_route(self) -> Optional[float]:
        return self._session.distance_from_route

    @property
    def estimated_time_remaining(self) -> float:
        return self._session.estimated_time_remaining_s

    @property
    def estimated_arrival_time(self) -> Optional[datetime]:
        return self._session.estimated_arrival_time

    @property
    def total_distance(self) -> float:
        route = self._session.route
        return route.total_distance_m if route else 0.0

    @property
    def total_time(self) -> float:
        route = self._session.route
        return route.expected_duration_s if route else 0.0

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def snapshot(self) -> NavigationSession:
        """Copy of the session for readers outside the engine."""
        return dataclasses.replace(self._session, alternatives=list(self._session.alternatives))

    def subscribe(self, event: NavigationEvent, callback: Listener) -> Callable[[], None]:
        return self._events.subscribe(event, callback)

    # ------------------------------------------------------------------
    # Route calculation
    # ------------------------------------------------------------------

    async def calculate_route(self, origin: Coord, destination: Coord) -> Optional[Route]:
        """
        Ask the routing service for a route and store it.

        The first route becomes the active one, all of them are kept as
        alternatives. The engine ends up IDLE; call start_navigation()
        to begin tracking.

        Returns:
            The new active route, or None if the request was superseded
            (navigation stopped or a newer request issued) while it was
            in flight.

        Raises:
            InvalidLocationError:  origin or destination is malformed.
            NoRouteFoundError:     the service returned no routes.
            RoutingError:          the service failed.
        """
        self._claim_writer()
        self._validate(origin, destination)
        return await self._calculate(origin, destination, rerouting=False)

    async def recalculate_route(self, origin: Coord, destination: Coord) -> bool:
        """
        Throttled reroute. Inside min_reroute_interval_s of the previous
        reroute this does nothing and returns False. Outside an active
        navigation session (started or restored, not yet stopped or
        arrived) it is refused and returns False as well.

        On success the engine is back in NAVIGATING on the new route.
        Failures propagate and leave the engine FAILED.
        """
        self._claim_writer()
        self._validate(origin, destination)

        if not self.is_ticking:
            logger.warning("Cannot reroute: navigation is not active.")
            return False

        now = self._clock()
        if not self._reroute_allowed(now):
            logger.debug("Reroute request throttled.")
            return False

        self._session.last_reroute_at = now
        self._is_rerouting = True
        self._set_state(NavigationState.REROUTING)
        logger.info(f"Rerouting: {origin} → {destination}")
        try:
            await self._calculate(origin, destination, rerouting=True)
        finally:
            self._is_rerouting = False
        return True

    async def _calculate(self, origin: Coord, destination: Coord, rerouting: bool) -> Optional[Route]:
        self._generation += 1
        token = self._generation
        self._set_state(NavigationState.CALCULATING)
        logger.info(f"Calculating route: {origin} → {destination}")

        try:
            routes = await self._request_routes(origin, destination)
        except RoutingError as exc:
            if token != self._generation:
                logger.debug(f"Ignoring failure of superseded route request: {exc}")
                return None
            logger.warning(f"Route calculation failed: {exc}")
            self._set_state(NavigationState.FAILED, exc)
            raise

        if token != self._generation:
            logger.debug(f"Discarding stale route response (request {token}, current {self._generation}).")
            return None

        if not routes:
            error = NoRouteFoundError()
            logger.warning(f"Route calculation failed: {error}")
            self._set_state(NavigationState.FAILED, error)
            raise error

        self._apply_routes(routes, rerouting)
        return self._session.route

    async def _request_routes(self, origin: Coord, destination: Coord) -> List[Route]:
        try:
            return list(await self._routing.route(origin, destination, want_alternatives=True))
        except RoutingError:
            raise
        except Exception as exc:
            raise RoutingTransportError(f"Routing service failed: {exc}") from exc

    def _apply_routes(self, routes: List[Route], rerouting: bool) -> None:
        session = self._session
        route = routes[0]
        session.route = route
        session.alternatives = list(routes)
        session.route_started_at = self._clock()
        self._update_eta(route.expected_duration_s)
        if rerouting:
            session.current_step_index = 0

        logger.info(
            f"Route ready — {len(route.steps)} steps, {int(route.total_distance_m)} m, "
            f"{len(routes) - 1} alternatives."
        )
        self._events.emit(NavigationEvent.ROUTE_UPDATED, route)

        if rerouting:
            self._set_state(NavigationState.NAVIGATING)
            if session.last_known_location is not None:
                self.update_current_step(session.last_known_location)
        else:
            self._set_state(NavigationState.IDLE)

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start_navigation(self) -> bool:
        """Begin tracking the stored route. Returns False if there is none."""
        self._claim_writer()
        session = self._session
        if session.route is None:
            logger.warning("Cannot start navigation: no route calculated.")
            return False
        if session.state in (NavigationState.CALCULATING, NavigationState.REROUTING):
            logger.warning(f"Cannot start navigation while {session.state.value}.")
            return False

        # The progress tick needs a running loop; fail before touching the session
        asyncio.get_running_loop()

        session.current_step_index = 0
        session.route_started_at = self._clock()
        self._update_eta(session.route.expected_duration_s)
        self._set_state(NavigationState.NAVIGATING)
        self._start_tick()
        logger.info("Navigation started.")
        return True

    def stop_navigation(self) -> None:
        """End the session immediately; in-flight routing responses are ignored."""
        self._claim_writer()
        self._teardown()
        self._set_state(NavigationState.IDLE)
        logger.info("Navigation stopped.")

    def select_alternative_route(self, index: int) -> bool:
        """Make alternatives[index] the active route and restart step tracking."""
        self._claim_writer()
        session = self._session
        if not 0 <= index < len(session.alternatives):
            logger.warning(f"No alternative route at index {index}.")
            return False

        session.route = session.alternatives[index]
        session.current_step_index = 0
        self._events.emit(NavigationEvent.ROUTE_UPDATED, session.route)
        if session.last_known_location is not None:
            self.update_current_step(session.last_known_location)
        return True

    def restore_route(self, route: Route) -> None:
        """Resume navigating a route computed earlier (e.g. loaded from disk)."""
        self._claim_writer()
        asyncio.get_running_loop()
        self._generation += 1
        self._is_rerouting = False
        self._cancel_reroutes()

        session = self._session
        session.route = route
        session.current_step_index = 0
        session.route_started_at = self._clock()
        self._update_eta(route.expected_duration_s)

        self._events.emit(NavigationEvent.ROUTE_UPDATED, route)
        self._set_state(NavigationState.NAVIGATING)
        self._start_tick()
        logger.info(f"Navigation restored — {len(route.steps)} steps.")

    async def aclose(self) -> None:
        """Cancel the progress tick and any background reroute."""
        self._generation += 1
        self._cancel_tick()
        tasks = self._cancel_reroutes()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Core method — call on every location fix
    # ------------------------------------------------------------------

    def update_location(self, location: Coord) -> None:
        """
        Process a new position: arrival first, then deviation, then step progress.
        """
        self._claim_writer()
        session = self._session
        session.last_known_location = location

        route = session.route
        if session.state is not NavigationState.NAVIGATING or route is None:
            return

        # 1. Arrival wins over everything else
        destination = route.destination
        if coord_distance(location, destination) < self.config.arrival_radius_m:
            self._arrive(destination)
            return

        # 2. Off-route check
        deviation = min_distance_to_route(location, route, self.config.on_route_fast_path_m)
        session.distance_from_route = deviation
        if deviation > self.config.reroute_threshold_m:
            if self._is_rerouting or self._reroute_tasks:
                logger.debug(f"Off route by {deviation:.1f} m, reroute already pending.")
            elif not self._reroute_allowed(self._clock()):
                logger.debug(f"Off route by {deviation:.1f} m, reroute throttled.")
            else:
                logger.info(f"Off route by {deviation:.1f} m — requesting new route.")
                self._schedule_reroute(location, destination)

        # 3. Step progress
        self.update_current_step(location)

    def update_current_step(self, location: Coord) -> None:
        """Advance to the next step when close to the current step's anchor."""
        session = self._session
        route = session.route
        if route is None or session.current_step_index >= len(route.steps):
            return

        step = route.steps[session.current_step_index]
        session.distance_to_next_step = coord_distance(location, step.location)

        is_last = session.current_step_index >= len(route.steps) - 1
        if session.distance_to_next_step < self.config.step_advance_radius_m and not is_last:
            session.current_step_index += 1
            logger.debug(
                f"Step {session.current_step_index} reached "
                f"({session.distance_to_next_step:.1f} m from anchor)."
            )
            self._events.emit(NavigationEvent.STEP_CHANGED, session.current_step_index)

    def refresh_progress(self) -> None:
        """Periodic work: update ETA and re-check arrival with the last fix."""
        self._claim_writer()
        session = self._session
        route = session.route
        if session.state is not NavigationState.NAVIGATING or route is None:
            return

        now = self._clock()
        started = session.route_started_at if session.route_started_at is not None else now
        self._update_eta(max(0.0, route.expected_duration_s - (now - started)))

        location = session.last_known_location
        if location is not None and coord_distance(location, route.destination) < self.config.arrival_radius_m:
            self._arrive(route.destination)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _claim_writer(self) -> None:
        ident = threading.get_ident()
        if self._owner_thread is None:
            self._owner_thread = ident
        elif self._owner_thread != ident:
            raise RuntimeError("NavigationEngine must only be driven from its owning thread.")

    @staticmethod
    def _validate(origin: Coord, destination: Coord) -> None:
        if origin is None or not origin.is_valid():
            raise InvalidLocationError("origin", origin)
        if destination is None or not destination.is_valid():
            raise InvalidLocationError("destination", destination)

    def _reroute_allowed(self, now: float) -> bool:
        last = self._session.last_reroute_at
        return last is None or now - last >= self.config.min_reroute_interval_s

    def _set_state(self, state: NavigationState, reason: Optional[NavigationError] = None) -> None:
        session = self._session
        if session.state is state and session.failure_reason is reason:
            return
        session.state = state
        session.failure_reason = reason
        logger.debug(f"State → {state.value}")
        self._events.emit(NavigationEvent.STATE_CHANGED, (state, reason))

    def _update_eta(self, remaining_s: float) -> None:
        self._session.estimated_time_remaining_s = remaining_s
        self._session.estimated_arrival_time = datetime.now() + timedelta(seconds=remaining_s)

    def _arrive(self, destination: Coord) -> None:
        logger.info("You have reached your destination.")
        self._set_state(NavigationState.ARRIVED)
        self._events.emit(NavigationEvent.ARRIVED, destination)
        self._teardown()

    def _teardown(self) -> None:
        self._generation += 1
        self._is_rerouting = False
        self._cancel_tick()
        self._cancel_reroutes()

        session = self._session
        had_route = session.route is not None
        session.route = None
        session.alternatives = []
        session.current_step_index = 0
        session.last_known_location = None
        session.route_started_at = None
        session.distance_to_next_step = 0.0
        session.distance_from_route = None
        session.estimated_time_remaining_s = 0.0
        session.estimated_arrival_time = None
        if had_route:
            self._events.emit(NavigationEvent.ROUTE_UPDATED, None)

    # Background reroute -------------------------------------------------

    def _schedule_reroute(self, origin: Coord, destination: Coord) -> None:
        coro = self._reroute_in_background(origin, destination, self._generation)
        task = asyncio.get_running_loop().create_task(coro)
        self._reroute_tasks.add(task)
        task.add_done_callback(self._reroute_tasks.discard)

    def _cancel_reroutes(self) -> List[asyncio.Task]:
        tasks = list(self._reroute_tasks)
        self._reroute_tasks.clear()
        current = asyncio.current_task() if tasks else None
        for task in tasks:
            if task is not current:
                task.cancel()
        return [task for task in tasks if task is not current]

    async def _reroute_in_background(self, origin: Coord, destination: Coord, token: int) -> None:
        # Session stopped, arrived or replaced before this task got to run
        if token != self._generation:
            logger.debug("Dropping reroute scheduled for a finished session.")
            return
        try:
            await self.recalculate_route(origin, destination)
        except NavigationError as exc:
            logger.warning(f"Reroute failed, keeping current route: {exc}")
            if self._session.state is NavigationState.FAILED and self._session.route is not None:
                self._set_state(NavigationState.NAVIGATING)

    # Progress tick ------------------------------------------------------

    def _start_tick(self) -> None:
        self._cancel_tick()
        self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())

    def _cancel_tick(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _tick_loop(self) -> None:
        interval = self.config.progress_tick_interval_s
        while True:
            await asyncio.sleep(interval)
            self.refresh_progress()
