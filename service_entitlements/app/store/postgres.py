"""
PostgreSQL document store.

Documents live in a single JSONB table keyed by (collection, id); equality
filters are evaluated with JSONB containment.
"""

import json
from typing import Any, List, Mapping, Optional

import asyncpg

from shared.errors import DependencyStartError, DocumentStoreError
from shared.logging import get_logger

from .base import Document


class PostgresDocumentStore:
    """asyncpg-backed document store."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("entitlements.store.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the pool and ensure the documents table exists."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL document store started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL document store", error=str(e))
            raise DependencyStartError("postgres", str(e))

    async def stop(self):
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL document store stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection VARCHAR(100) NOT NULL,
                    id VARCHAR(255) NOT NULL,
                    data JSONB NOT NULL DEFAULT '{}',
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (collection, id)
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_data ON documents USING GIN (data);
            """)

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise DocumentStoreError("PostgreSQL document store is not started")
        return self.pool

    @staticmethod
    def _to_document(row) -> Document:
        data = row["data"]
        if isinstance(data, str):
            data = json.loads(data)
        document = dict(data)
        document["id"] = row["id"]
        return document

    async def get_documents(self, collection: str, where: Mapping[str, Any]) -> List[Document]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT id, data FROM documents WHERE collection = $1 AND data @> $2::jsonb",
                    collection, json.dumps(dict(where))
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise DocumentStoreError(
                f"Query on {collection} failed",
                details={"collection": collection, "error": str(e)}
            )
        return [self._to_document(row) for row in rows]

    async def get_document(self, collection: str, document_id: str) -> Optional[Document]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT id, data FROM documents WHERE collection = $1 AND id = $2",
                    collection, document_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise DocumentStoreError(
                f"Lookup in {collection} failed",
                details={"collection": collection, "id": document_id, "error": str(e)}
            )
        return self._to_document(row) if row else None

    async def put_document(self, collection: str, document_id: str, data: Document):
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO documents (collection, id, data, updated_at)
                    VALUES ($1, $2, $3::jsonb, NOW())
                    ON CONFLICT (collection, id) DO UPDATE SET
                        data = EXCLUDED.data,
                        updated_at = EXCLUDED.updated_at
                """, collection, document_id, json.dumps(data, default=str))
        except (asyncpg.PostgresError, OSError) as e:
            raise DocumentStoreError(
                f"Write to {collection} failed",
                details={"collection": collection, "id": document_id, "error": str(e)}
            )

    async def health_check(self) -> bool:
        """Check PostgreSQL health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False
