import json
import os

from navigation.tracking.nav_config import NavConfig
from navigation.tracking.nav_logger import NavLogger

from nav_fakes import DESTINATION, MIDPOINT, ORIGIN, make_route


def test_route_round_trip(config):
    nav_logger = NavLogger(config)
    route = make_route(ORIGIN, MIDPOINT, DESTINATION, duration=42.0)

    assert nav_logger.save_route(route) is True
    assert os.path.exists(config.route_filepath)
    assert nav_logger.load_route() == route


def test_load_missing_route_returns_none(config):
    assert NavLogger(config).load_route("does-not-exist.json") is None


def test_load_corrupt_route_returns_none(config):
    with open(config.route_filepath, "w", encoding="utf-8") as f:
        f.write('{"route": {"points": []}}')
    assert NavLogger(config).load_route() is None


def test_clear_route_is_idempotent(config):
    nav_logger = NavLogger(config)
    nav_logger.save_route(make_route(ORIGIN, DESTINATION))
    nav_logger.clear_route()
    nav_logger.clear_route()
    assert not os.path.exists(config.route_filepath)


def test_log_event_appends_json_lines(tmp_path):
    config = NavConfig(log_dir=str(tmp_path / "logs"))
    nav_logger = NavLogger(config)

    nav_logger.log_event("step_changed", 1, ORIGIN)
    nav_logger.log_event("arrived", DESTINATION.to_dict())

    with open(config.session_log_filepath, encoding="utf-8") as f:
        lines = [json.loads(line) for line in f]
    assert [entry["event"] for entry in lines] == ["step_changed", "arrived"]
    assert lines[0]["lat"] == ORIGIN.lat
    assert "lat" not in lines[1]
    assert lines[1]["data"] == {"lat": DESTINATION.lat, "lon": DESTINATION.lon}
