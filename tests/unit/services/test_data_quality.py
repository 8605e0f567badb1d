"""Tests for smoothing, validation scoring and anomaly detection."""

from datetime import datetime, timedelta, timezone

import pytest

from growengine.domain.exceptions import ValidationFailure
from growengine.domain.sensors import SensorMetrics
from growengine.enums import AnomalyType
from growengine.services.anomaly_detection_service import AnomalyDetectionService
from growengine.services.smoothing_service import DataSmoothingService, SmoothingAlgorithm, SmoothingConfig
from growengine.services.validation_service import DataValidationService

NOW = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


# ========================== Smoothing ======================================


def test_moving_average_over_device_window():
    service = DataSmoothingService()

    first = service.smooth("dev-1", SensorMetrics(temperature=20.0))
    second = service.smooth("dev-1", SensorMetrics(temperature=22.0))

    assert first.temperature == 20.0
    assert second.temperature == pytest.approx(21.0)
    assert service.window_length("dev-1", "temperature") == 2


def test_devices_do_not_share_windows():
    service = DataSmoothingService()

    service.smooth("dev-1", SensorMetrics(temperature=20.0))
    other = service.smooth("dev-2", SensorMetrics(temperature=30.0))

    assert other.temperature == 30.0


def test_window_is_bounded_and_median_supported():
    service = DataSmoothingService({"co2": SmoothingConfig(SmoothingAlgorithm.MEDIAN, window_size=3)})

    for value in (400.0, 2000.0, 410.0, 420.0):
        smoothed = service.smooth("dev-1", SensorMetrics(co2=value))

    assert service.window_length("dev-1", "co2") == 3
    assert smoothed.co2 == 420.0


def test_reset_forgets_device_state():
    service = DataSmoothingService()
    service.smooth("dev-1", SensorMetrics(humidity=50.0))

    service.reset("dev-1")

    assert service.window_length("dev-1", "humidity") == 0


# ========================== Validation =====================================


@pytest.mark.parametrize(
    "metrics",
    [
        SensorMetrics(),
        SensorMetrics(temperature=float("nan")),
        SensorMetrics(humidity=140.0),
        SensorMetrics(ph=-1.0),
    ],
)
def test_unusable_samples_are_rejected(metrics):
    with pytest.raises(ValidationFailure):
        DataValidationService().validate(metrics)


def test_in_range_sample_scores_one():
    score = DataValidationService().assess("dev-1", SensorMetrics(temperature=24.0, humidity=60.0), NOW)

    assert score == 1.0


def test_operational_range_penalty_is_averaged():
    score = DataValidationService().assess("dev-1", SensorMetrics(temperature=65.0, humidity=60.0), NOW)

    assert score == pytest.approx(0.85)


def test_fast_change_penalty():
    service = DataValidationService()
    service.assess("dev-1", SensorMetrics(temperature=20.0), NOW)

    score = service.assess("dev-1", SensorMetrics(temperature=30.0), NOW + timedelta(minutes=1))

    assert score == pytest.approx(0.8)


# ========================== Anomaly detection ==============================


def test_out_of_range_value_is_flagged():
    service = AnomalyDetectionService()

    anomalies = service.check("dev-1", SensorMetrics(co2=2500.0), NOW)

    assert len(anomalies) == 1
    assert anomalies[0].anomaly_type == AnomalyType.OUT_OF_RANGE
    assert 0 < anomalies[0].severity <= 1.0


def test_stuck_value_needs_five_identical_samples():
    service = AnomalyDetectionService()
    results = [
        service.check_value("dev-1", "humidity", 55.0, NOW + timedelta(seconds=5 * i)) for i in range(6)
    ]

    assert results[:5] == [None] * 5
    assert results[5].anomaly_type == AnomalyType.STUCK


def test_rapid_change_is_flagged():
    service = AnomalyDetectionService()
    values = [20.0, 20.1, 20.0, 20.1, 20.0, 20.1]
    for i, value in enumerate(values):
        service.check_value("dev-1", "temperature", value, NOW + timedelta(seconds=10 * i))

    anomaly = service.check_value("dev-1", "temperature", 35.0, NOW + timedelta(seconds=60))

    assert anomaly is not None
    assert anomaly.anomaly_type == AnomalyType.RATE_OF_CHANGE


def test_statistics_cover_history():
    service = AnomalyDetectionService()
    for i, value in enumerate((20.0, 22.0, 24.0)):
        service.check_value("dev-1", "temperature", value, NOW + timedelta(seconds=i))

    stats = service.get_statistics("dev-1", "temperature")

    assert stats["count"] == 3
    assert stats["mean"] == pytest.approx(22.0)
    assert stats["min"] == 20.0
    assert stats["max"] == 24.0
    assert service.get_statistics("dev-2", "temperature")["count"] == 0
