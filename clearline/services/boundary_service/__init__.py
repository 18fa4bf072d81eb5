"""Boundary Service: hybrid boundary violation detection.

Rules first; the model fallback only runs when rules find nothing.
Detection and persistence are separate steps with separate results.

Components:
- config.py: Phrase tables, response templates, BoundaryConfig
- rule_engine.py: Deterministic sub-detectors
- prompts.py / response_schema.py / fallback_detector.py: Model fallback
- violation_repository.py: Violation records and per-sender patterns
- pipeline.py: Detect and persist steps
- handler.py: HTTP endpoint (POST /violations/detect)
"""

from .config import BoundaryConfig
from .fallback_detector import FallbackDetector, FallbackOutcome
from .pipeline import (
    BoundaryDetectionPipeline,
    DetectionRequest,
    DetectionResult,
    PersistenceResult,
)
from .response_schema import SchemaResult, parse_boundary_response
from .rule_engine import BoundaryRuleEngine
from .violation_repository import ViolationPatternRepository, ViolationRecordRepository

__all__ = [
    "BoundaryConfig",
    "BoundaryDetectionPipeline",
    "BoundaryRuleEngine",
    "DetectionRequest",
    "DetectionResult",
    "FallbackDetector",
    "FallbackOutcome",
    "PersistenceResult",
    "SchemaResult",
    "ViolationPatternRepository",
    "ViolationRecordRepository",
    "parse_boundary_response",
]
