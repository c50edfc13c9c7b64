"""
Test suite for schemasync.

Unit tests run against an in-memory backend and mocked asyncpg pools; no
database server is needed.
"""
