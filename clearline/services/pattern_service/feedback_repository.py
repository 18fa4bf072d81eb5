"""Feedback and analysis repositories for Pattern Service.

message_analyses holds one row per detection (the RSD triggers seen in
the message). analysis_feedback holds the user's verdict on an
analysis. Reading feedback back joins the linked analysis so each row
carries the first trigger pattern the message hit.

Both are append-only. PostgreSQL when a connection manager is given,
in-memory otherwise.
"""
import json
import logging
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from clearline.shared.database import BaseRepository, ConnectionManager
from clearline.shared.models import FeedbackRecord, MessageAnalysis

logger = logging.getLogger(__name__)


def _json_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return json.loads(value)
    return list(value)


class AnalysisRepository(BaseRepository[MessageAnalysis]):
    """Append-only store of per-message detection outcomes."""

    def __init__(self, connection_manager: Optional[ConnectionManager] = None):
        super().__init__(connection_manager, "message_analyses")
        self._memory_store: Dict[str, MessageAnalysis] = {}
        self._lock = threading.Lock()

    def _row_to_entity(self, row: tuple) -> MessageAnalysis:
        """Convert database row to MessageAnalysis.

        Expected columns:
            0: id (analysis_id)
            1: message_id
            2: sender_id
            3: user_id
            4: rsd_triggers (jsonb)
            5: violation_types (jsonb)
            6: message_timestamp
            7: created_at
        """
        return MessageAnalysis(
            analysis_id=row[0],
            message_id=row[1],
            sender_id=row[2],
            user_id=row[3],
            rsd_triggers=tuple(_json_list(row[4])),
            violation_types=tuple(_json_list(row[5])),
            message_timestamp=row[6],
            created_at=row[7],
        )

    def _entity_to_params(self, entity: MessageAnalysis) -> Dict[str, Any]:
        return {
            "id": entity.analysis_id,
            "message_id": entity.message_id,
            "sender_id": entity.sender_id,
            "user_id": entity.user_id,
            "rsd_triggers": json.dumps(list(entity.rsd_triggers)),
            "violation_types": json.dumps(list(entity.violation_types)),
            "message_timestamp": entity.message_timestamp,
            "created_at": entity.created_at,
        }

    def append(self, analysis: MessageAnalysis) -> MessageAnalysis:
        """Store an analysis.

        Raises:
            RepositoryError: If storage fails
        """
        if self.connection_manager:
            return self.insert(analysis)

        with self._lock:
            self._memory_store[analysis.analysis_id] = analysis
        return analysis

    def find_by_id(self, entity_id: str) -> Optional[MessageAnalysis]:
        if self.connection_manager:
            return super().find_by_id(entity_id)

        with self._lock:
            return self._memory_store.get(entity_id)


class FeedbackRepository(BaseRepository[FeedbackRecord]):
    """Append-only store of interpretation feedback."""

    def __init__(
        self,
        connection_manager: Optional[ConnectionManager] = None,
        analysis_repository: Optional[AnalysisRepository] = None,
    ):
        super().__init__(connection_manager, "analysis_feedback")
        self.analysis_repository = analysis_repository or AnalysisRepository(connection_manager)
        self._memory_store: List[FeedbackRecord] = []
        self._lock = threading.Lock()

    def _row_to_entity(self, row: tuple) -> FeedbackRecord:
        """Convert database row to FeedbackRecord.

        Expected columns:
            0: id (feedback_id)
            1: analysis_id
            2: message_id
            3: sender_id
            4: user_id
            5: user_chosen_interpretation
            6: was_helpful
            7: feedback_timestamp
            8: trigger_pattern (joined queries only)
        """
        return FeedbackRecord(
            feedback_id=row[0],
            analysis_id=row[1],
            message_id=row[2],
            sender_id=row[3],
            user_id=row[4],
            user_chosen_interpretation=row[5],
            was_helpful=row[6],
            feedback_timestamp=row[7],
            trigger_pattern=row[8] if len(row) > 8 else None,
        )

    def _entity_to_params(self, entity: FeedbackRecord) -> Dict[str, Any]:
        return {
            "id": entity.feedback_id,
            "analysis_id": entity.analysis_id,
            "message_id": entity.message_id,
            "sender_id": entity.sender_id,
            "user_id": entity.user_id,
            "user_chosen_interpretation": entity.user_chosen_interpretation,
            "was_helpful": entity.was_helpful,
            "feedback_timestamp": entity.feedback_timestamp,
        }

    def append(self, record: FeedbackRecord) -> FeedbackRecord:
        """Store a feedback record.

        Raises:
            RepositoryError: If storage fails
        """
        if self.connection_manager:
            stored = self.insert(record)
        else:
            with self._lock:
                self._memory_store.append(record)
            stored = record

        logger.info(
            "FEEDBACK_STORED",
            extra={
                "feedback_id": stored.feedback_id,
                "analysis_id": stored.analysis_id,
                "has_interpretation": stored.user_chosen_interpretation is not None,
                "was_helpful": stored.was_helpful,
            }
        )
        return stored

    def find_recent(
        self,
        user_id: str,
        sender_id: str,
        since_timestamp: int,
    ) -> List[FeedbackRecord]:
        """Feedback for a (user, sender) pair since a unix timestamp.

        Newest first, each row carrying the linked analysis's first
        RSD trigger as trigger_pattern.
        """
        if self.connection_manager:
            rows = self._query_all(
                f"""
                SELECT f.id, f.analysis_id, f.message_id, f.sender_id, f.user_id,
                       f.user_chosen_interpretation, f.was_helpful, f.feedback_timestamp,
                       a.rsd_triggers ->> 0
                FROM {self.table_name} f
                LEFT JOIN {self.analysis_repository.table_name} a ON a.id = f.analysis_id
                WHERE f.user_id = %s AND f.sender_id = %s AND f.feedback_timestamp >= %s
                ORDER BY f.feedback_timestamp DESC
                """,
                (user_id, sender_id, since_timestamp),
            )
            return [self._row_to_entity(row) for row in rows]

        with self._lock:
            matches = [
                r for r in self._memory_store
                if r.user_id == user_id
                and r.sender_id == sender_id
                and r.feedback_timestamp >= since_timestamp
            ]
        matches.sort(key=lambda r: r.feedback_timestamp, reverse=True)
        return [self._with_trigger(r) for r in matches]

    def _with_trigger(self, record: FeedbackRecord) -> FeedbackRecord:
        analysis = self.analysis_repository.find_by_id(record.analysis_id)
        trigger = analysis.primary_trigger if analysis else None
        return replace(record, trigger_pattern=trigger)
