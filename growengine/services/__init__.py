"""
Services Package
================
Sensor ingestion, data quality, alerting and safety supervision.
"""

from growengine.services.alert_evaluator import ALERT_RULES, AlertEvaluator
from growengine.services.anomaly_detection_service import AnomalyDetectionService
from growengine.services.ingestion_service import SensorIngestionPipeline, sampling_period_for
from growengine.services.safety_supervisor import SafetySupervisor
from growengine.services.smoothing_service import DataSmoothingService
from growengine.services.validation_service import DataValidationService

__all__ = [
    "ALERT_RULES",
    "AlertEvaluator",
    "AnomalyDetectionService",
    "DataSmoothingService",
    "DataValidationService",
    "SafetySupervisor",
    "SensorIngestionPipeline",
    "sampling_period_for",
]
