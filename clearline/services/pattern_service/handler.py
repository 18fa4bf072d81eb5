"""Pattern Service HTTP handler - sender profiles and feedback.

Endpoints:
- POST /senders/patterns: profile and prompt context for one sender
- POST /feedback: record the user's verdict on an analysis
"""
import asyncio
import logging
import os
import time
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from clearline.shared.auth import AuthConfig, AuthResolver
from clearline.shared.database import ConnectionManager, get_connection_manager
from clearline.shared.errors import AuthorizationError, ExternalServiceError, ValidationError
from clearline.shared.models import FeedbackRecord
from clearline.shared.utils import configure_pii_salt, hash_pii
from .feedback_repository import AnalysisRepository, FeedbackRepository
from .profile_builder import generate_sender_context
from .service import SenderPatternService

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Configure PII salt from environment
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)


def _connection_manager() -> Optional[ConnectionManager]:
    if os.getenv("STORE_BACKEND", "memory").lower() == "postgres":
        return get_connection_manager()
    return None


connection_manager = _connection_manager()
analysis_repository = AnalysisRepository(connection_manager)
pattern_service = SenderPatternService(
    FeedbackRepository(connection_manager, analysis_repository)
)
auth_resolver = AuthResolver(AuthConfig.from_env())


def _authenticate() -> str:
    return asyncio.run(auth_resolver.resolve(request.headers))


def _auth_error_response(error: Exception):
    if isinstance(error, ExternalServiceError):
        logger.error("PATTERN_AUTH_UNAVAILABLE", extra={"error": str(error)})
        return jsonify({"error": "Authentication service unavailable"}), 503
    return jsonify({"error": str(error)}), 401


def _parse_feedback(body: Dict[str, Any], user_id: str) -> FeedbackRecord:
    missing = [key for key in ("analysisId", "messageId", "senderId") if not body.get(key)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    interpretation = body.get("userChosenInterpretation")
    was_helpful = body.get("wasHelpful")
    if interpretation is None and was_helpful is None:
        raise ValidationError("Provide userChosenInterpretation or wasHelpful")
    if interpretation is not None and (not isinstance(interpretation, str) or not interpretation.strip()):
        raise ValidationError("userChosenInterpretation must be a non-empty string")
    if was_helpful is not None and not isinstance(was_helpful, bool):
        raise ValidationError("wasHelpful must be a boolean")

    timestamp = body.get("feedbackTimestamp")
    if timestamp is None:
        timestamp = int(time.time())
    elif isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp <= 0:
        raise ValidationError("feedbackTimestamp must be a positive unix timestamp")

    return FeedbackRecord(
        analysis_id=body["analysisId"],
        message_id=body["messageId"],
        sender_id=body["senderId"],
        user_id=user_id,
        user_chosen_interpretation=interpretation.strip() if interpretation else None,
        was_helpful=was_helpful,
        feedback_timestamp=int(timestamp),
    )


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "pattern-service",
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    if connection_manager is not None:
        db_health = connection_manager.health_check()
        if not db_health["healthy"] and db_health["status"] != "not_initialized":
            return jsonify({"status": "not_ready", "reason": "database_unavailable"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/senders/patterns", methods=["POST"])
def get_sender_patterns():
    """Profile of a sender built from the caller's last 90 days of feedback.

    Request Body:
        {"senderId": "user_456"}

    Response:
        {
            "success": true,
            "profile": {...},
            "context": "**Sender Communication Pattern (5 messages):** ...",
            "hasData": true
        }
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Request body required"}), 400

    try:
        user_id = _authenticate()
    except (AuthorizationError, ExternalServiceError) as e:
        return _auth_error_response(e)

    sender_id = body.get("senderId")
    if not isinstance(sender_id, str) or not sender_id.strip():
        return jsonify({"error": "senderId is required"}), 400

    try:
        profile = pattern_service.get_profile(user_id, sender_id)
    except Exception as e:
        logger.error(
            "SENDER_PROFILE_ERROR",
            extra={
                "sender_id_hash": hash_pii(sender_id),
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return jsonify({"error": "Failed to load sender patterns"}), 500

    return jsonify({
        "success": True,
        "profile": profile.to_dict(),
        "context": generate_sender_context(profile),
        "hasData": profile.has_data,
    }), 200


@app.route("/feedback", methods=["POST"])
def submit_feedback():
    """Record feedback on an analysis.

    Request Body:
        {
            "analysisId": "an_...",
            "messageId": "msg_123",
            "senderId": "user_456",
            "userChosenInterpretation": "they are just busy",
            "wasHelpful": true
        }
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Request body required"}), 400

    try:
        user_id = _authenticate()
    except (AuthorizationError, ExternalServiceError) as e:
        return _auth_error_response(e)

    try:
        record = _parse_feedback(body, user_id)
    except ValidationError as e:
        logger.warning("FEEDBACK_REQUEST_INVALID", extra={"reason": str(e)})
        return jsonify({"error": str(e)}), 400

    try:
        stored = pattern_service.submit_feedback(record)
    except Exception as e:
        logger.error(
            "FEEDBACK_STORE_ERROR",
            extra={"analysis_id": record.analysis_id, "error": str(e)}
        )
        return jsonify({"error": "Failed to store feedback"}), 500

    return jsonify({"success": True, "feedbackId": stored.feedback_id}), 201


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    port = int(os.getenv("PORT", "8002"))
    app.run(host="0.0.0.0", port=port, debug=False)
