"""Violation repositories for Boundary Service.

Two stores:
- boundary_violations: append-only ViolationRecords, one per detection
- boundary_violation_patterns: per (user, sender, type) counters

Both use PostgreSQL when a connection manager is given and an
in-memory store otherwise (development and tests). Pattern counters are
incremented atomically in both backends.
"""
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from clearline.shared.database import BaseRepository, ConnectionManager
from clearline.shared.models import (
    REPEAT_OFFENDER_THRESHOLD,
    Severity,
    SeverityTrend,
    ViolationPattern,
    ViolationRecord,
    ViolationType,
)
from clearline.shared.utils import hash_pii

logger = logging.getLogger(__name__)


class ViolationRecordRepository(BaseRepository[ViolationRecord]):
    """Append-only store of detected violations."""

    def __init__(self, connection_manager: Optional[ConnectionManager] = None):
        super().__init__(connection_manager, "boundary_violations")
        self._memory_store: List[ViolationRecord] = []
        self._lock = threading.Lock()

    def _row_to_entity(self, row: tuple) -> ViolationRecord:
        """Convert database row to ViolationRecord.

        Expected columns:
            0: id (record_id)
            1: message_id
            2: sender_id
            3: user_id
            4: violation_type
            5: severity
            6: explanation
            7: evidence (jsonb)
            8: is_after_hours
            9: suggested_gentle
            10: suggested_moderate
            11: suggested_firm
            12: message_timestamp
            13: created_at
        """
        evidence = row[7] or []
        if isinstance(evidence, str):
            evidence = json.loads(evidence)

        return ViolationRecord(
            record_id=row[0],
            message_id=row[1],
            sender_id=row[2],
            user_id=row[3],
            violation_type=ViolationType(row[4]),
            severity=Severity.parse(row[5]),
            explanation=row[6],
            evidence=tuple(evidence),
            suggested_gentle=row[9],
            suggested_moderate=row[10],
            suggested_firm=row[11],
            message_timestamp=row[12],
            created_at=row[13],
        )

    def _entity_to_params(self, entity: ViolationRecord) -> Dict[str, Any]:
        return {
            "id": entity.record_id,
            "message_id": entity.message_id,
            "sender_id": entity.sender_id,
            "user_id": entity.user_id,
            "violation_type": entity.violation_type.value,
            "severity": entity.severity.value,
            "explanation": entity.explanation,
            "evidence": json.dumps(list(entity.evidence)),
            "is_after_hours": entity.is_after_hours,
            "suggested_gentle": entity.suggested_gentle,
            "suggested_moderate": entity.suggested_moderate,
            "suggested_firm": entity.suggested_firm,
            "message_timestamp": entity.message_timestamp,
            "created_at": entity.created_at,
        }

    def append(self, record: ViolationRecord) -> ViolationRecord:
        """Append a violation record.

        Raises:
            RepositoryError: If storage fails
        """
        if self.connection_manager:
            stored = self.insert(record)
        else:
            with self._lock:
                self._memory_store.append(record)
            stored = record

        logger.debug(
            "VIOLATION_RECORD_STORED",
            extra={
                "record_id": stored.record_id,
                "violation_type": stored.violation_type.value,
                "backend": "postgresql" if self.connection_manager else "memory",
            }
        )
        return stored

    def count_since(self, user_id: str, sender_id: str, since_timestamp: int) -> int:
        """Count a sender's violations against a user since a unix timestamp."""
        if self.connection_manager:
            row = self._query_one(
                f"""
                SELECT COUNT(*) FROM {self.table_name}
                WHERE user_id = %s AND sender_id = %s AND message_timestamp >= %s
                """,
                (user_id, sender_id, since_timestamp),
            )
            return int(row[0]) if row else 0

        with self._lock:
            return sum(
                1 for r in self._memory_store
                if r.user_id == user_id
                and r.sender_id == sender_id
                and r.message_timestamp >= since_timestamp
            )


class ViolationPatternRepository(BaseRepository[ViolationPattern]):
    """Per-sender violation counters keyed by (user, sender, type).

    occurrence_count only ever increases. On PostgreSQL the increment is
    a single upsert statement; in memory it runs under a lock.

    The upsert targets ON CONFLICT (user_id, sender_id, violation_type),
    so the table must declare that key unique, e.g.:

        ALTER TABLE boundary_violation_patterns
            ADD CONSTRAINT boundary_violation_patterns_key
            UNIQUE (user_id, sender_id, violation_type);

    Without it PostgreSQL rejects every increment and the failure only
    surfaces in PersistenceResult.errors.
    """

    _COLUMNS = (
        "user_id, sender_id, violation_type, occurrence_count, "
        "last_violation_timestamp, is_repeat_offender, severity_trend, updated_at"
    )

    def __init__(self, connection_manager: Optional[ConnectionManager] = None):
        super().__init__(connection_manager, "boundary_violation_patterns")
        self._memory_store: Dict[Tuple[str, str, ViolationType], ViolationPattern] = {}
        self._lock = threading.Lock()

    def _row_to_entity(self, row: tuple) -> ViolationPattern:
        """Convert database row to ViolationPattern.

        Expected columns (see _COLUMNS):
            0: user_id
            1: sender_id
            2: violation_type
            3: occurrence_count
            4: last_violation_timestamp
            5: is_repeat_offender (derived, not read back)
            6: severity_trend
            7: updated_at
        """
        return ViolationPattern(
            user_id=row[0],
            sender_id=row[1],
            violation_type=ViolationType(row[2]),
            occurrence_count=row[3],
            last_violation_timestamp=row[4],
            severity_trend=SeverityTrend(row[6]),
            updated_at=row[7],
        )

    def _entity_to_params(self, entity: ViolationPattern) -> Dict[str, Any]:
        return {
            "user_id": entity.user_id,
            "sender_id": entity.sender_id,
            "violation_type": entity.violation_type.value,
            "occurrence_count": entity.occurrence_count,
            "last_violation_timestamp": entity.last_violation_timestamp,
            "is_repeat_offender": entity.is_repeat_offender,
            "severity_trend": entity.severity_trend.value,
            "updated_at": entity.updated_at,
        }

    def increment(
        self,
        user_id: str,
        sender_id: str,
        violation_type: ViolationType,
        timestamp: int,
    ) -> ViolationPattern:
        """Record one occurrence, creating the pattern at count 1.

        Raises:
            RepositoryError: If storage fails
        """
        if self.connection_manager:
            pattern = self._increment_postgres(user_id, sender_id, violation_type, timestamp)
        else:
            pattern = self._increment_memory(user_id, sender_id, violation_type, timestamp)

        logger.info(
            "VIOLATION_PATTERN_UPDATED",
            extra={
                "user_id_hash": hash_pii(user_id),
                "sender_id_hash": hash_pii(sender_id),
                "violation_type": violation_type.value,
                "occurrence_count": pattern.occurrence_count,
                "severity_trend": pattern.severity_trend.value,
            }
        )
        return pattern

    def _increment_postgres(
        self,
        user_id: str,
        sender_id: str,
        violation_type: ViolationType,
        timestamp: int,
    ) -> ViolationPattern:
        table = self.table_name
        query = f"""
            INSERT INTO {table} ({self._COLUMNS})
            VALUES (%s, %s, %s, 1, %s, FALSE, %s, %s)
            ON CONFLICT (user_id, sender_id, violation_type) DO UPDATE SET
                occurrence_count = {table}.occurrence_count + 1,
                last_violation_timestamp = GREATEST(
                    {table}.last_violation_timestamp,
                    EXCLUDED.last_violation_timestamp
                ),
                is_repeat_offender = {table}.occurrence_count + 1 >= %s,
                severity_trend = CASE
                    WHEN {table}.occurrence_count + 1 >= %s THEN %s
                    ELSE %s
                END,
                updated_at = EXCLUDED.updated_at
            RETURNING {self._COLUMNS}
        """
        params = (
            user_id,
            sender_id,
            violation_type.value,
            timestamp,
            SeverityTrend.INITIAL.value,
            datetime.now(timezone.utc),
            REPEAT_OFFENDER_THRESHOLD,
            REPEAT_OFFENDER_THRESHOLD,
            SeverityTrend.ESCALATING.value,
            SeverityTrend.STABLE.value,
        )
        row = self._query_one(query, params, commit=True)
        return self._row_to_entity(row)

    def _increment_memory(
        self,
        user_id: str,
        sender_id: str,
        violation_type: ViolationType,
        timestamp: int,
    ) -> ViolationPattern:
        key = (user_id, sender_id, violation_type)
        with self._lock:
            existing = self._memory_store.get(key)
            if existing is None:
                pattern = ViolationPattern(
                    user_id=user_id,
                    sender_id=sender_id,
                    violation_type=violation_type,
                    occurrence_count=1,
                    last_violation_timestamp=timestamp,
                )
            else:
                pattern = existing.record_occurrence(timestamp)
            self._memory_store[key] = pattern
        return pattern
