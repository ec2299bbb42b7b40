"""
Vector Store with PostgreSQL + pgvector

Read-side access to the legal corpus table: cosine-distance similarity
search with an optional exact-match category filter. Ingestion happens
elsewhere; this module only creates the schema and queries it.
"""

import os
import logging
from typing import Optional
from dataclasses import dataclass
from contextlib import contextmanager

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)

# Columns returned for every row, in addition to the computed _distance
RESULT_COLUMNS = [
    "id", "text", "source_file", "category", "subcategory",
    "document_name", "document_type",
]


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    table_name: str = "legal_documents"
    embedding_dimensions: int = 1536
    # Connection pooling settings
    pool_min_connections: int = 1
    pool_max_connections: int = 10


class VectorStore:
    """
    PostgreSQL vector store with pgvector.

    Rows come back as plain dicts with the stored columns plus `_distance`
    (cosine distance, 0 = identical). Category filtering is exact-match on a
    bound array parameter; no caller-supplied value is ever spliced into SQL.
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        self.config = config or VectorStoreConfig()
        self._pool = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/legal_advisor"
        )

    def connect(self) -> None:
        """Create the connection pool and make sure pgvector is installed."""
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=self.config.pool_min_connections,
                maxconn=self.config.pool_max_connections,
                dsn=self._connection_string,
                cursor_factory=RealDictCursor,
            )
            conn = self._pool.getconn()
            try:
                with conn.cursor() as cur:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                conn.commit()
            finally:
                self._pool.putconn(conn)

            logger.info(
                f"Connection pool initialized (min={self.config.pool_min_connections}, "
                f"max={self.config.pool_max_connections})"
            )
        except Exception as e:
            self._pool = None
            logger.error(f"Database connection failed: {e}")
            raise

    def _ensure_connection(self):
        if not self._pool:
            self.connect()
        return self._pool.getconn()

    def _release_connection(self, conn):
        if self._pool and conn:
            self._pool.putconn(conn)

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting a pooled connection.

        Usage:
            with store.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        conn = self._ensure_connection()
        try:
            yield conn
        finally:
            self._release_connection(conn)

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    def _execute_with_retry(self, operation, label="db_operation"):
        """Execute a DB operation with one retry on a stale connection.

        Args:
            operation: Callable(conn) that performs the DB work and returns a result.
            label: Human-readable name for logging.
        """
        for attempt in range(2):
            conn = self._ensure_connection()
            try:
                result = operation(conn)
                self._release_connection(conn)
                return result
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                self._safe_rollback(conn)
                self._release_connection(conn)
                if attempt == 0:
                    logger.warning(f"{label}: stale conn, reconnecting: {e}")
                    self.close()
                    continue
                raise
            except Exception:
                self._safe_rollback(conn)
                self._release_connection(conn)
                raise

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")

    def is_available(self) -> bool:
        """True when the database answers a trivial query."""
        def _op(conn):
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
            return True

        try:
            return self._execute_with_retry(_op, "is_available")
        except Exception as e:
            logger.warning(f"Vector store unavailable: {e}")
            return False

    def initialize_schema(self) -> None:
        """Create the corpus table and its indexes if they don't exist."""
        table = self.config.table_name
        schema_sql = f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            source_file TEXT,
            category TEXT,
            subcategory TEXT,
            document_name TEXT,
            document_type TEXT,
            embedding VECTOR({self.config.embedding_dimensions}),
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_{table}_category
            ON {table}(category);

        CREATE INDEX IF NOT EXISTS idx_{table}_embedding
            ON {table}
            USING hnsw (embedding vector_cosine_ops);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()

        self._execute_with_retry(_op, "initialize_schema")
        logger.info("Schema initialized successfully")

    def search(
        self,
        query_embedding: list[float],
        limit: int = 10,
        categories: Optional[list[str]] = None,
    ) -> list[dict]:
        """
        Nearest-neighbour search by cosine distance.

        Args:
            query_embedding: Query embedding vector
            limit: Maximum number of rows to return
            categories: Optional exact category labels to restrict the search to

        Returns:
            Row dicts ordered by ascending `_distance`
        """
        where_clause = ""
        filter_params = []
        if categories:
            where_clause = "WHERE c.category = ANY(%s)"
            filter_params.append(list(categories))

        column_sql = ", ".join(f"c.{col}" for col in RESULT_COLUMNS)
        sql = f"""
        SELECT
            {column_sql},
            c.embedding <=> %s::vector AS _distance
        FROM {self.config.table_name} c
        {where_clause}
        ORDER BY c.embedding <=> %s::vector
        LIMIT %s
        """

        # Params in order: distance embedding, filters, order embedding, limit
        final_params = [query_embedding] + filter_params + [query_embedding, limit]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, final_params)
                rows = cur.fetchall()

            results = []
            for row in rows:
                # Handle both RealDictRow and tuple
                if hasattr(row, "keys"):
                    row_dict = dict(row)
                else:
                    row_dict = dict(zip(RESULT_COLUMNS + ["_distance"], row))
                row_dict["_distance"] = float(row_dict["_distance"])
                results.append(row_dict)
            return results

        return self._execute_with_retry(_op, "search")
