"""
Alert Evaluator
===============
Compares each accepted reading with the room's target ranges and keeps the
set of active SensorAlerts.

Alert ids are derived from (alert type, reading id), so re-evaluating the
same reading never emits a duplicate.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass

from growengine.domain.exceptions import ConfigurationMissing
from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorAlert, SensorReading
from growengine.enums import AlertSeverity, AlertType, EngineEvent
from growengine.schemas.events import SensorAlertPayload
from growengine.utils.clock import Clock, SystemClock
from growengine.utils.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertRule:
    """How one metric maps to alerts. A rule without high_type alerts on any deviation."""

    metric: str
    low_type: AlertType
    low_severity: AlertSeverity
    low_message: str
    low_recommendation: str
    high_type: AlertType | None = None
    high_severity: AlertSeverity | None = None
    high_message: str = ""
    high_recommendation: str = ""


ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        "temperature",
        AlertType.TEMPERATURE_LOW,
        AlertSeverity.WARNING,
        "Temperature below minimum threshold",
        "Increase heating or check ventilation",
        AlertType.TEMPERATURE_HIGH,
        AlertSeverity.CRITICAL,
        "Temperature above maximum threshold",
        "Increase ventilation or cooling",
    ),
    AlertRule(
        "humidity",
        AlertType.HUMIDITY_LOW,
        AlertSeverity.WARNING,
        "Humidity below minimum threshold",
        "Increase humidification or reduce ventilation",
        AlertType.HUMIDITY_HIGH,
        AlertSeverity.CRITICAL,
        "Humidity above maximum threshold",
        "Increase ventilation or dehumidification",
    ),
    AlertRule(
        "co2",
        AlertType.CO2_LOW,
        AlertSeverity.INFO,
        "CO2 below minimum threshold",
        "Consider CO2 enrichment for better growth",
        AlertType.CO2_HIGH,
        AlertSeverity.CRITICAL,
        "CO2 above maximum threshold",
        "Increase ventilation immediately",
    ),
    AlertRule(
        "vpd",
        AlertType.VPD_OUT_OF_RANGE,
        AlertSeverity.WARNING,
        "VPD outside optimal range",
        "Adjust temperature and humidity balance",
    ),
    AlertRule(
        "soil_moisture",
        AlertType.SOIL_MOISTURE_LOW,
        AlertSeverity.CRITICAL,
        "Soil moisture critically low",
        "Irrigation needed immediately",
        AlertType.SOIL_MOISTURE_HIGH,
        AlertSeverity.WARNING,
        "Soil moisture too high",
        "Risk of root rot, reduce watering",
    ),
    AlertRule(
        "ph",
        AlertType.PH_OUT_OF_RANGE,
        AlertSeverity.WARNING,
        "pH outside optimal range",
        "Adjust nutrient solution pH",
    ),
    AlertRule(
        "ec",
        AlertType.EC_OUT_OF_RANGE,
        AlertSeverity.WARNING,
        "EC outside optimal range",
        "Adjust nutrient concentration",
    ),
)


class AlertEvaluator:
    """Threshold alerting over accepted readings."""

    def __init__(
        self,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
        max_history: int = 500,
        max_active: int | None = None,
    ):
        """
        Args:
            max_history: bound of the raised-alert history and dedupe window
            max_active: bound of unacknowledged alerts; the oldest is evicted
                first. Defaults to max_history.
        """
        self.event_bus = event_bus
        self.clock = clock or SystemClock()
        self.max_active = int(max_active if max_active is not None else max_history)
        self._lock = threading.RLock()
        self._active: OrderedDict[str, SensorAlert] = OrderedDict()
        self._seen_ids: deque[str] = deque(maxlen=max_history)
        self._history: deque[SensorAlert] = deque(maxlen=max_history)

    def evaluate(self, reading: SensorReading, room: RoomConfig) -> list[SensorAlert]:
        """Return the alerts newly raised by this reading."""
        raised: list[SensorAlert] = []
        for rule in ALERT_RULES:
            value = reading.get_value(rule.metric)
            target = room.targets.range_for(rule.metric)
            if value is None or target is None:
                continue

            if rule.high_type is None:
                if target.contains(value):
                    continue
                alert = self._build(reading, rule.low_type, rule.low_severity, rule.low_message, rule.low_recommendation, value)
            elif target.below(value):
                alert = self._build(reading, rule.low_type, rule.low_severity, rule.low_message, rule.low_recommendation, value)
            elif target.above(value):
                alert = self._build(
                    reading, rule.high_type, rule.high_severity, rule.high_message, rule.high_recommendation, value
                )
            else:
                continue

            if self._register(alert):
                raised.append(alert)

        for alert in raised:
            logger.info("Alert %s (%s) for room %s: %s", alert.alert_type.value, alert.severity.value, alert.room_id, alert.message)
            self._publish(EngineEvent.SENSOR_ALERT, alert)
        return raised

    def _build(
        self,
        reading: SensorReading,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        recommendation: str,
        value: float,
    ) -> SensorAlert:
        return SensorAlert(
            id=f"{alert_type.value}_{reading.id}",
            device_id=reading.device_id,
            room_id=reading.room_id,
            alert_type=alert_type,
            severity=severity,
            message=message,
            recommendation=recommendation,
            value=value,
            timestamp=reading.timestamp,
        )

    def _register(self, alert: SensorAlert) -> bool:
        with self._lock:
            if alert.id in self._active or alert.id in self._seen_ids:
                return False
            self._active[alert.id] = alert
            while len(self._active) > self.max_active:
                evicted_id, _ = self._active.popitem(last=False)
                logger.debug("Evicted oldest active alert %s", evicted_id)
            self._seen_ids.append(alert.id)
            self._history.append(alert)
            return True

    def acknowledge(self, alert_id: str) -> SensorAlert:
        with self._lock:
            alert = self._active.pop(alert_id, None)
            if alert is None:
                raise ConfigurationMissing(f"Unknown or inactive alert: {alert_id}", detail={"alert_id": alert_id})
            alert.acknowledged = True
            alert.acknowledged_at = self.clock.now()
        self._publish(EngineEvent.ALERT_ACKNOWLEDGED, alert)
        return alert

    def dismiss(self, alert_id: str) -> SensorAlert:
        with self._lock:
            alert = self._active.pop(alert_id, None)
            if alert is None:
                raise ConfigurationMissing(f"Unknown or inactive alert: {alert_id}", detail={"alert_id": alert_id})
        self._publish(EngineEvent.ALERT_DISMISSED, alert)
        return alert

    def active_alerts(self, room_id: str | None = None) -> list[SensorAlert]:
        with self._lock:
            return [a for a in self._active.values() if room_id is None or a.room_id == room_id]

    def alert_history(self, room_id: str | None = None, limit: int | None = None) -> list[SensorAlert]:
        """Raised alerts, newest first."""
        with self._lock:
            alerts = [a for a in reversed(self._history) if room_id is None or a.room_id == room_id]
        return alerts[:limit] if limit is not None else alerts

    def clear_room(self, room_id: str) -> int:
        with self._lock:
            stale = [alert_id for alert_id, alert in self._active.items() if alert.room_id == room_id]
            for alert_id in stale:
                del self._active[alert_id]
        return len(stale)

    def _publish(self, event: EngineEvent, alert: SensorAlert) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(
            event,
            SensorAlertPayload(
                alert_id=alert.id,
                device_id=alert.device_id,
                room_id=alert.room_id,
                alert_type=alert.alert_type.value,
                severity=alert.severity.value,
                message=alert.message,
                recommendation=alert.recommendation,
                value=alert.value,
                timestamp=alert.timestamp,
                acknowledged=alert.acknowledged,
            ),
        )
