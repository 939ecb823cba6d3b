# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Heading filter constants
# ---------------------------------------------------------------------------

@dataclass
class HeadingFilterConfig:
    process_noise_heading: float = 0.01    # added to heading uncertainty per prediction
    process_noise_velocity: float = 0.1    # added to velocity uncertainty per prediction
    compass_noise_deg: float = 5.0         # std-dev of compass readings
    default_dt_s: float = 1.0 / 60.0       # first update has no previous timestamp
    initial_uncertainty: float = 1.0
    max_uncertainty: float = 10.0          # uncertainty at which confidence hits 0

    @property
    def compass_noise_variance(self) -> float:
        return self.compass_noise_deg * self.compass_noise_deg


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Route tracking
    reroute_threshold_m: float = 20.0      # lateral distance from polyline → off-route
    min_reroute_interval_s: float = 2.0    # throttle between reroute requests
    arrival_radius_m: float = 30.0         # distance to final point → arrived
    step_advance_radius_m: float = 20.0    # distance to step anchor → next step
    on_route_fast_path_m: float = 5.0      # stop scanning segments below this
    progress_tick_interval_s: float = 1.0  # background ETA / arrival refresh

    # Heading
    course_min_speed_ms: float = 2.0       # GPS course preferred above this speed
    heading: HeadingFilterConfig = field(default_factory=HeadingFilterConfig)

    # Reference router
    travel_speed_kmh: float = 50.0

    # Logging
    log_dir: str = "."                     # directory for saved JSON files
    route_filename: str = "active_route.json"
    session_log_filename: str = "nav_session.jsonl"

    @property
    def route_filepath(self) -> str:
        return os.path.join(self.log_dir, self.route_filename)

    @property
    def session_log_filepath(self) -> str:
        return os.path.join(self.log_dir, self.session_log_filename)
