"""Base repository pattern for PostgreSQL-backed stores.

Subclasses map rows to domain entities; this base supplies the
connection handling, append-only inserts and query helpers, and
translates driver exceptions into RepositoryError.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class DuplicateError(RepositoryError):
    """Duplicate entity already exists."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository with common operations."""

    id_column = "id"

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info("REPOSITORY_INITIALIZED", extra={"table_name": table_name})

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert a database row (columns in table order) to an entity."""
        pass

    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        """Convert an entity to a column -> value mapping."""
        pass

    def insert(self, entity: T) -> T:
        """Append an entity. Existing rows are never overwritten.

        Raises:
            DuplicateError: If the primary key already exists
            RepositoryError: On any other driver failure
        """
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ", ".join(["%s"] * len(columns))

        query = f"""
            INSERT INTO {self.table_name} ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *
        """
        row = self._query_one(query, list(params.values()), commit=True)
        return self._row_to_entity(row) if row else entity

    def find_by_id(self, entity_id: str) -> Optional[T]:
        row = self._query_one(
            f"SELECT * FROM {self.table_name} WHERE {self.id_column} = %s",
            (entity_id,),
        )
        return self._row_to_entity(row) if row else None

    def _query_one(
        self,
        query: str,
        params: Sequence[Any],
        commit: bool = False,
    ) -> Optional[tuple]:
        rows = self._execute(query, params, commit=commit, fetch="one")
        return rows[0] if rows else None

    def _query_all(self, query: str, params: Sequence[Any]) -> List[tuple]:
        return self._execute(query, params, fetch="all")

    def _execute(
        self,
        query: str,
        params: Sequence[Any],
        commit: bool = False,
        fetch: str = "all",
    ) -> List[tuple]:
        """Run a statement and return fetched rows.

        Driver errors are logged and re-raised as RepositoryError, with
        unique-constraint violations mapped to DuplicateError.
        """
        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    if fetch == "one":
                        row = cur.fetchone()
                        rows = [row] if row is not None else []
                    else:
                        rows = list(cur.fetchall())
                if commit:
                    conn.commit()
                return rows
        except RepositoryError:
            raise
        except Exception as e:
            logger.error(
                "REPOSITORY_QUERY_FAILED",
                extra={
                    "table_name": self.table_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            # psycopg2 UniqueViolation carries SQLSTATE 23505
            if getattr(e, "pgcode", None) == "23505":
                raise DuplicateError(str(e)) from e
            raise RepositoryError(str(e)) from e
