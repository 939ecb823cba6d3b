# main.py
# Entry point — simulates a GPS + compass feed into NavigationSystem.
# In production, replace the simulated positions with your real sensor source.
#
# Run with: python -m navigation.tracking.main

import asyncio
import logging
import math

from .geo_utils import EARTH_RADIUS_M, nearest_segment_index
from .models import Coord, HeadingSample, NavigationState
from .nav_config import NavConfig
from .navigator import NavigationSystem
from .routing import StraightLineRoutingService

# ------------------------------------------------------------------
# Logging setup — configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# ------------------------------------------------------------------
# Config — tweak thresholds or paths here, not inside the modules
# ------------------------------------------------------------------
config = NavConfig(
    reroute_threshold_m=20.0,
    arrival_radius_m=30.0,
    log_dir="logs",
)

ORIGIN      = Coord(37.0, -122.0)
DESTINATION = Coord(37.01, -122.0)


def _east_of(coord: Coord, metres: float) -> Coord:
    d_lon = math.degrees(metres / (EARTH_RADIUS_M * math.cos(math.radians(coord.lat))))
    return Coord(coord.lat, coord.lon + d_lon)


def _simulated_track():
    """Drive north, drift 50 m off the road halfway, then finish the trip."""
    for i in range(11):
        frac = i / 10
        position = Coord(ORIGIN.lat + frac * (DESTINATION.lat - ORIGIN.lat), ORIGIN.lon)
        if i == 5:
            position = _east_of(position, 50.0)
        yield position


async def main() -> None:
    nav = NavigationSystem(StraightLineRoutingService(config), config=config)

    success, msg = await nav.start_navigation(ORIGIN, DESTINATION)
    if not success:
        print(f"[Main] Could not start navigation: {msg}")
        return

    print("\n--- GPS Loop Active ---")
    for t, position in enumerate(_simulated_track()):
        nav.update_heading(HeadingSample(timestamp=float(t), compass_heading=1.5, angular_rate=0.0))
        session = nav.update(position, course=0.0, speed=13.9)

        route = nav.engine.current_route
        segment = nearest_segment_index(position, route.points)[0] if route else None
        print(
            f"  GPS {position} → [{session.state.name}] step {session.current_step_index} "
            f"segment {segment} heading {nav.display_heading:.1f}°"
        )

        if session.state is NavigationState.ARRIVED:
            print("  ✓  Destination reached. Navigation ended.")
            break

        # Let background reroutes run
        await asyncio.sleep(0.05)

    await nav.aclose()
    print("\n--- Session complete ---")
    print(f"    Log files written to: {config.log_dir}/")


if __name__ == "__main__":
    asyncio.run(main())
