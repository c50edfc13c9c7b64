"""
Tests for schemasync.schema.snapshot module.
"""

import pytest

from schemasync.schema.snapshot import SchemaSnapshot


@pytest.fixture
def snapshot(backend):
    backend.add_table("Page", {"Title": "text"}, {"Title": "(Title)"})
    return SchemaSnapshot(backend)


class TestSchemaSnapshot:
    """Test the lazily populated schema snapshot."""

    def test_not_loaded_initially(self, snapshot):
        assert snapshot.is_loaded is False
        assert snapshot.table_exists("Page") is False

    @pytest.mark.asyncio
    async def test_load_lists_tables(self, snapshot, backend):
        await snapshot.load()

        assert snapshot.is_loaded is True
        assert snapshot.table_exists("Page") is True
        assert snapshot.table_exists("page") is True
        assert snapshot.table_exists("Missing") is False
        assert backend.calls_named("list_tables") == [("list_tables",)]

    @pytest.mark.asyncio
    async def test_fields_are_memoized(self, snapshot, backend):
        await snapshot.load()

        assert await snapshot.fields_of("Page") == {"Title": "text"}
        assert await snapshot.fields_of("PAGE") == {"Title": "text"}
        assert len(backend.calls_named("list_fields")) == 1

    @pytest.mark.asyncio
    async def test_indexes_are_memoized(self, snapshot, backend):
        await snapshot.load()

        assert await snapshot.indexes_of("Page") == {"Title": "(Title)"}
        await snapshot.indexes_of("Page")
        assert len(backend.calls_named("list_indexes")) == 1

    @pytest.mark.asyncio
    async def test_unknown_table_returns_empty_without_io(self, snapshot, backend):
        await snapshot.load()

        assert await snapshot.fields_of("Missing") == {}
        assert await snapshot.indexes_of("Missing") == {}
        assert backend.calls_named("list_fields") == []
        assert backend.calls_named("list_indexes") == []

    @pytest.mark.asyncio
    async def test_reload_forgets_cached_fields(self, snapshot, backend):
        await snapshot.load()
        await snapshot.fields_of("Page")
        backend.tables["Page"]["fields"]["Sort"] = "integer"

        assert "Sort" not in await snapshot.fields_of("Page")

        await snapshot.load()
        assert "Sort" in await snapshot.fields_of("Page")

    @pytest.mark.asyncio
    async def test_mark_renamed(self, snapshot):
        await snapshot.load()
        await snapshot.fields_of("Page")

        snapshot.mark_renamed("Page", "_obsolete_Page")

        assert snapshot.table_exists("Page") is False
        assert snapshot.table_exists("_obsolete_Page") is True
        assert await snapshot.fields_of("_obsolete_Page") == {"Title": "text"}

    def test_mark_renamed_before_load_is_ignored(self, snapshot):
        snapshot.mark_renamed("Page", "Other")
        assert snapshot.is_loaded is False

    @pytest.mark.asyncio
    async def test_clear(self, snapshot):
        await snapshot.load()

        snapshot.clear()

        assert snapshot.is_loaded is False
