import pytest

from navigation.tracking.nav_config import NavConfig

from nav_fakes import FakeClock, FakeRoutingService


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def routing() -> FakeRoutingService:
    return FakeRoutingService()


@pytest.fixture
def config(tmp_path) -> NavConfig:
    return NavConfig(log_dir=str(tmp_path), progress_tick_interval_s=0.01)
