import math

import pytest

from navigation.tracking.heading_filter import HeadingEstimator
from navigation.tracking.models import HeadingSample
from navigation.tracking.nav_config import HeadingFilterConfig


def test_default_constants():
    cfg = HeadingFilterConfig()
    assert cfg.process_noise_heading == 0.01
    assert cfg.process_noise_velocity == 0.1
    assert cfg.compass_noise_deg == 5.0
    assert cfg.compass_noise_variance == 25.0
    assert cfg.default_dt_s == pytest.approx(1 / 60)
    assert cfg.max_uncertainty == 10.0


def test_no_samples_is_noop():
    est = HeadingEstimator(initial_heading=42.0)
    assert est.update(timestamp=5.0) == 42.0
    assert est.heading_uncertainty == 1.0
    assert est.confidence == pytest.approx(0.9)


def test_single_compass_correction_uses_gain():
    est = HeadingEstimator()
    heading = est.update(compass_heading=90.0, timestamp=1.0)

    gain = 1.0 / (1.0 + 25.0)
    assert heading == pytest.approx(gain * 90.0)
    assert est.heading_uncertainty == pytest.approx(1.0 - gain)


def test_wrap_around_takes_short_way():
    est = HeadingEstimator(initial_heading=1.0)
    heading = est.update(compass_heading=359.0, timestamp=1.0)

    # innovation is -2, so heading moves slightly below 1 rather than up towards 359
    assert heading == pytest.approx(1.0 - 2.0 / 26.0)


def test_wrap_across_zero_stays_normalized():
    est = HeadingEstimator(initial_heading=0.5)
    for i in range(50):
        heading = est.update(compass_heading=350.0, timestamp=float(i))
        assert 0.0 <= heading < 360.0
    assert heading > 300.0


def test_prediction_first_call_uses_default_dt():
    est = HeadingEstimator()
    rate = math.radians(30.0)  # 30 deg/s

    est.update(angular_rate=rate, timestamp=10.0)
    # Heading advances with the previous (zero) velocity, then adopts the new rate
    assert est.heading == 0.0
    assert est.angular_velocity == pytest.approx(30.0)
    dt = 1 / 60
    assert est.heading_uncertainty == pytest.approx(1.0 + dt * dt * 1.0 + 0.01)

    est.update(angular_rate=rate, timestamp=10.5)
    assert est.heading == pytest.approx(15.0)


def test_prediction_skipped_for_non_positive_dt():
    est = HeadingEstimator()
    est.update(angular_rate=0.5, timestamp=1.0)
    before = est.heading_uncertainty
    est.update(angular_rate=0.5, timestamp=1.0)
    assert est.heading_uncertainty == before


def test_pure_prediction_never_raises_confidence():
    est = HeadingEstimator()
    previous = est.confidence
    for i in range(200):
        est.update(angular_rate=0.1 * ((-1) ** i), timestamp=i * 0.1)
        assert est.confidence <= previous
        previous = est.confidence
    assert previous == 0.0


def test_correction_snaps_confidence_up():
    est = HeadingEstimator()
    for i in range(100):
        est.update(angular_rate=0.0, timestamp=i * 0.1)
    low = est.confidence
    est.update(compass_heading=0.0, timestamp=10.1)
    assert est.confidence > low


def test_stable_compass_converges():
    est = HeadingEstimator()
    for i in range(3000):
        est.update(compass_heading=40.0, timestamp=i * 0.02)
    assert est.heading == pytest.approx(40.0, abs=0.5)
    assert est.confidence > 0.99


def test_heading_always_normalized_under_spin():
    est = HeadingEstimator(initial_heading=350.0)
    for i in range(500):
        heading = est.update(angular_rate=-3.0 if i < 250 else 3.0, timestamp=i * 0.1)
        assert 0.0 <= heading < 360.0


def test_reset_restores_initial_state():
    est = HeadingEstimator()
    for i in range(10):
        est.update(compass_heading=100.0, angular_rate=0.2, timestamp=float(i))
    est.reset(heading=-90.0)

    assert est.heading == 270.0
    assert est.angular_velocity == 0.0
    assert est.confidence == pytest.approx(0.9)
    # timestamp history is dropped, so the default dt applies again
    est.update(angular_rate=0.0, timestamp=1000.0)
    assert est.heading_uncertainty == pytest.approx(1.0 + (1 / 60) ** 2 + 0.01)


def test_update_sample_and_estimate():
    est = HeadingEstimator()
    est.update_sample(HeadingSample(timestamp=1.0, compass_heading=10.0, angular_rate=math.radians(5.0)))

    snapshot = est.estimate
    assert snapshot.heading_degrees == est.heading
    assert snapshot.angular_velocity_deg_s == pytest.approx(5.0)
    assert 0.0 <= snapshot.confidence <= 1.0
