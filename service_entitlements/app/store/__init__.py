"""
Document store boundary.

The engine only needs equality-filtered collection reads and single
document lookups. Adapters:
- memory: in-process store for local runs and tests.
- postgres: JSONB documents in PostgreSQL via asyncpg.
"""
