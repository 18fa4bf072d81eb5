"""Boundary Service HTTP handler - violation detection endpoint.

POST /violations/detect runs the detect step and then the persist step.
The response always reflects what was detected, even if storing it
failed. Model fallback failures degrade to zero fallback violations.

No message bodies or raw user/sender ids in logs: use hash_pii().
"""
import asyncio
import logging
import os
from typing import Mapping, Optional, Tuple

from flask import Flask, jsonify, request

from clearline.shared.auth import AuthConfig, AuthResolver
from clearline.shared.database import ConnectionManager, get_connection_manager
from clearline.shared.errors import AuthorizationError, ExternalServiceError, ValidationError
from clearline.shared.utils import configure_pii_salt, hash_pii
from clearline.services.llm_service import LLMConfig, create_llm
from clearline.services.pattern_service import (
    AnalysisRepository,
    FeedbackRepository,
    SenderPatternService,
)
from clearline.services.trigger_service import ToneIndicatorPolicy, TriggerConfig, TriggerMatcher
from .config import BoundaryConfig
from .fallback_detector import FallbackDetector
from .pipeline import (
    BoundaryDetectionPipeline,
    DetectionRequest,
    DetectionResult,
    PersistenceResult,
)
from .rule_engine import BoundaryRuleEngine
from .violation_repository import ViolationPatternRepository, ViolationRecordRepository

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Configure PII salt from environment
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)


def _connection_manager() -> Optional[ConnectionManager]:
    """PostgreSQL when STORE_BACKEND=postgres, in-memory stores otherwise."""
    if os.getenv("STORE_BACKEND", "memory").lower() == "postgres":
        return get_connection_manager()
    return None


connection_manager = _connection_manager()

boundary_config = BoundaryConfig(
    timezone=os.getenv("BOUNDARY_TIMEZONE", "UTC"),
    fallback_enabled=os.getenv("BOUNDARY_FALLBACK_ENABLED", "true").lower() == "true",
)
trigger_config = TriggerConfig(
    tone_indicator_policy=ToneIndicatorPolicy(
        os.getenv("TONE_INDICATOR_POLICY", ToneIndicatorPolicy.SUPPRESS_SHORT_RESPONSE.value)
    ),
)

llm_config = LLMConfig.from_env()
llm = create_llm(llm_config) if llm_config and boundary_config.fallback_enabled else None
if llm is None:
    logger.warning("BOUNDARY_FALLBACK_DISABLED", extra={"reason": "no_llm_configured"})

analysis_repository = AnalysisRepository(connection_manager)

pipeline = BoundaryDetectionPipeline(
    record_repository=ViolationRecordRepository(connection_manager),
    pattern_repository=ViolationPatternRepository(connection_manager),
    rule_engine=BoundaryRuleEngine(boundary_config),
    fallback_detector=FallbackDetector(llm),
    trigger_matcher=TriggerMatcher(trigger_config),
    analysis_repository=analysis_repository,
    sender_patterns=SenderPatternService(
        FeedbackRepository(connection_manager, analysis_repository)
    ),
)

auth_resolver = AuthResolver(AuthConfig.from_env())


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "boundary-service",
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies the store is reachable."""
    if connection_manager is not None:
        db_health = connection_manager.health_check()
        if not db_health["healthy"] and db_health["status"] != "not_initialized":
            return jsonify({"status": "not_ready", "reason": "database_unavailable"}), 503
    return jsonify({
        "status": "ready",
        "fallback_enabled": pipeline.fallback_detector.enabled,
    }), 200


async def _authenticate_and_detect(
    headers: Mapping[str, str],
    body: dict,
) -> Tuple[str, DetectionRequest, DetectionResult, PersistenceResult]:
    user_id = await auth_resolver.resolve(headers)
    detection_request = DetectionRequest.from_dict(body)
    result, persistence = await pipeline.run(detection_request, user_id)
    return user_id, detection_request, result, persistence


@app.route("/violations/detect", methods=["POST"])
def detect_violations():
    """Detect boundary violations in a received message.

    Request Body:
        {
            "messageId": "msg_123",
            "messageBody": "Can you send this ASAP?",
            "senderId": "user_456",
            "messageTimestamp": 1767222000
        }

    Response:
        {
            "success": true,
            "analysisId": "an_...",
            "violations": [...],
            "violationCount": 1,
            "senderViolationHistory": 0,
            "isRepeatOffender": false,
            "rsdTriggers": [...]
        }
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        logger.warning("DETECT_REQUEST_INVALID", extra={"reason": "empty_body"})
        return jsonify({"error": "Request body required"}), 400

    try:
        user_id, detection_request, result, persistence = asyncio.run(
            _authenticate_and_detect(request.headers, body)
        )
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 401
    except ValidationError as e:
        logger.warning("DETECT_REQUEST_INVALID", extra={"reason": str(e)})
        return jsonify({"error": str(e)}), 400
    except ExternalServiceError as e:
        logger.error("DETECT_AUTH_UNAVAILABLE", extra={"error": str(e), "service": e.service})
        return jsonify({"error": "Authentication service unavailable"}), 503
    except Exception as e:
        logger.error(
            "DETECT_ERROR",
            extra={"error": str(e), "error_type": type(e).__name__}
        )
        return jsonify({"error": "Detection failed"}), 500

    if not persistence.ok:
        logger.warning(
            "DETECT_PERSISTENCE_DEGRADED",
            extra={
                "message_id": detection_request.message_id,
                "user_id_hash": hash_pii(user_id),
                "errors": list(persistence.errors),
            }
        )

    response = {"success": True}
    response.update(result.to_dict())
    return jsonify(response), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    port = int(os.getenv("PORT", "8001"))
    app.run(host="0.0.0.0", port=port, debug=False)
