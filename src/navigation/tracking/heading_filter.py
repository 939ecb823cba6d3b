# heading_filter.py
# Compass + gyroscope fusion for a stable heading.
# Pure computation: no clocks, no I/O. Timestamps come from the caller.

import math
from typing import Optional

from .geo_utils import angle_difference, normalize_angle
from .models import HeadingEstimate, HeadingSample
from .nav_config import HeadingFilterConfig


class HeadingEstimator:
    """
    Predict/correct estimator over [heading, angular velocity].

    The 2x2 covariance is approximated by one uncertainty term per state
    component. The gyroscope drives prediction (heading advances by the
    previous angular velocity, uncertainty grows). The compass drives
    correction (heading pulled towards the reading by the gain,
    uncertainty shrinks).

    Usage:
        estimator = HeadingEstimator()

        # Inside the sensor callback:
        heading = estimator.update(compass_heading=271.5, angular_rate=0.02,
                                   timestamp=sample_time)
    """

    def __init__(
        self,
        initial_heading: float = 0.0,
        config: Optional[HeadingFilterConfig] = None,
    ) -> None:
        self.config = config or HeadingFilterConfig()
        self._last_timestamp: Optional[float] = None
        self.reset(initial_heading)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def reset(self, heading: float = 0.0) -> None:
        """Drop all history and start again from heading."""
        self._heading = normalize_angle(float(heading))
        self._angular_velocity = 0.0
        self._heading_uncertainty = self.config.initial_uncertainty
        self._velocity_uncertainty = self.config.initial_uncertainty
        self._last_timestamp = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def heading(self) -> float:
        return self._heading

    @property
    def angular_velocity(self) -> float:
        """Degrees per second."""
        return self._angular_velocity

    @property
    def heading_uncertainty(self) -> float:
        return self._heading_uncertainty

    @property
    def confidence(self) -> float:
        """1 when the heading is certain, 0 at or beyond max_uncertainty."""
        ratio = self._heading_uncertainty / self.config.max_uncertainty
        return max(0.0, min(1.0, 1.0 - ratio))

    @property
    def estimate(self) -> HeadingEstimate:
        return HeadingEstimate(
            heading_degrees=self._heading,
            angular_velocity_deg_s=self._angular_velocity,
            confidence=self.confidence,
        )

    # ------------------------------------------------------------------
    # Core method — call on every sensor sample
    # ------------------------------------------------------------------

    def update(
        self,
        compass_heading: Optional[float] = None,
        angular_rate: Optional[float] = None,
        timestamp: float = 0.0,
    ) -> float:
        """
        Fuse one sensor sample into the estimate.

        Args:
            compass_heading: Absolute heading in degrees, or None.
            angular_rate:    Rotation rate around the vertical axis in rad/s, or None.
            timestamp:       Sample time in seconds.

        Returns:
            New heading in degrees, normalised to [0, 360).
        """
        if compass_heading is None and angular_rate is None:
            return self._heading

        if self._last_timestamp is None:
            dt = self.config.default_dt_s
        else:
            dt = timestamp - self._last_timestamp
        self._last_timestamp = timestamp

        if angular_rate is not None and dt > 0:
            self._predict(math.degrees(angular_rate), dt)

        if compass_heading is not None:
            self._correct(compass_heading)

        self._heading = normalize_angle(self._heading)
        return self._heading

    def update_sample(self, sample: HeadingSample) -> float:
        return self.update(
            compass_heading=sample.compass_heading,
            angular_rate=sample.angular_rate,
            timestamp=sample.timestamp,
        )

    # ------------------------------------------------------------------
    # Filter steps
    # ------------------------------------------------------------------

    def _predict(self, rate_deg_s: float, dt: float) -> None:
        self._heading += self._angular_velocity * dt
        self._angular_velocity = rate_deg_s
        self._heading_uncertainty += dt * dt * self._velocity_uncertainty + self.config.process_noise_heading
        self._velocity_uncertainty += self.config.process_noise_velocity

    def _correct(self, compass_heading: float) -> None:
        innovation = angle_difference(compass_heading, self._heading)
        gain = self._heading_uncertainty / (self._heading_uncertainty + self.config.compass_noise_variance)
        self._heading += gain * innovation
        self._heading_uncertainty *= (1.0 - gain)
