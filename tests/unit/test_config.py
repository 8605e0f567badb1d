"""Tests for environment driven configuration."""

import logging

import pytest

from growengine.config import EngineConfig, load_config
from growengine.domain.exceptions import ConfigurationError
from growengine.engine import create_engine
from growengine.utils.logging_setup import configure_logging


def test_defaults():
    config = EngineConfig()

    assert config.loop_intervals() == {
        "climate": 60,
        "watering": 300,
        "lighting": 60,
        "co2": 120,
        "monitoring": 30,
        "sensing": 1,
    }
    assert config.history_size == 1000
    assert config.dispatch_filter_by_capability is False
    assert config.metric_stale_seconds == 900.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GROWENGINE_CLIMATE_INTERVAL", "15")
    monkeypatch.setenv("GROWENGINE_DISPATCH_FILTER_BY_CAPABILITY", "yes")
    monkeypatch.setenv("GROWENGINE_DISPATCH_TIMEOUT", "2.5")
    monkeypatch.setenv("GROWENGINE_LOG_FILE", "")

    config = load_config()

    assert config.climate_interval_seconds == 15
    assert config.dispatch_filter_by_capability is True
    assert config.dispatch_timeout_seconds == 2.5
    assert config.log_file is None


@pytest.mark.parametrize(
    "name, value",
    [
        ("GROWENGINE_WATERING_INTERVAL", "often"),
        ("GROWENGINE_WATERING_INTERVAL", "-5"),
        ("GROWENGINE_DISPATCH_TIMEOUT", "-1"),
        ("GROWENGINE_HISTORY_SIZE", "0"),
        ("GROWENGINE_METRIC_STALE_SECONDS", "-1"),
    ],
)
def test_invalid_values_raise_configuration_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        load_config()


@pytest.fixture
def package_logger():
    logger = logging.getLogger("growengine")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in logger.handlers:
        if handler not in saved[0]:
            handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_configure_logging_does_not_duplicate_handlers(package_logger, tmp_path):
    log_file = tmp_path / "logs" / "engine.log"

    configure_logging("warning", str(log_file))
    configure_logging("debug", str(log_file))

    names = [h.name for h in package_logger.handlers]
    assert names.count("growengine_console") == 1
    assert names.count("growengine_file") == 1
    assert package_logger.level == logging.DEBUG
    assert log_file.exists()


def test_create_engine_installs_log_handlers(package_logger, tmp_path, hardware, registry, clock):
    config = EngineConfig(log_file=str(tmp_path / "engine.log"), eventbus_worker_count=0)

    engine = create_engine(hardware, registry, registry, config=config, clock=clock)

    assert engine.config is config
    assert "growengine_file" in [h.name for h in package_logger.handlers]
    engine.stop()
