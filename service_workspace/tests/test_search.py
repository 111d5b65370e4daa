"""
Unit tests for SearchIndex and TableSearch.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock, test_data_factory, test_environment
from service_workspace.app.adapters.memory import InMemoryTableStore
from service_workspace.app.caching import keys
from service_workspace.app.caching.smart_cache import SmartCache
from service_workspace.app.caching.table_reader import CachedTableReader
from service_workspace.app.results import ErrorKind, ResultStatus
from service_workspace.app.search.index import SearchIndex, is_blank, normalize
from service_workspace.app.search.table_search import TableSearch

ORDERS = "Order_Management!A:Q"


class TestSearchIndex:
    """Test cases for SearchIndex."""

    @pytest.fixture
    def index(self):
        return SearchIndex.from_snapshot(test_data_factory.order_snapshot())

    def test_single_column_lookup(self):
        """Test rows are numbered from 1 below the header."""
        index = SearchIndex.from_snapshot(test_data_factory.status_snapshot(["Pending", "Processing", "Pending"]))

        assert index.query({"Status": "Pending"}) == frozenset({1, 3})
        assert index.row_count == 3

    def test_lookup_is_case_and_whitespace_insensitive(self):
        """Test values are normalized on both sides."""
        index = SearchIndex.from_snapshot(test_data_factory.status_snapshot([" Pending ", "PENDING", "Done"]))

        assert index.lookup("Status", "pending") == frozenset({1, 2})
        assert index.query({"Status": "  PeNdInG"}) == frozenset({1, 2})

    def test_multi_column_query_is_intersection(self, index):
        """Test every criterion must hold."""
        acme = index.query({"Client_Name": "Acme Ltd"})
        pending = index.query({"Order_Status": "Pending"})

        both = index.query({"Client_Name": "Acme Ltd", "Order_Status": "Pending"})

        assert both == acme & pending
        assert both == frozenset({1, 3})

    def test_unknown_column_matches_nothing(self, index):
        """Test a criterion on a missing column yields no rows."""
        assert index.query({"Nope": "x"}) == frozenset()
        assert index.query({"Client_Name": "Acme Ltd", "Nope": "x"}) == frozenset()

    def test_empty_criteria_matches_nothing(self, index):
        """Test an empty query is empty rather than everything."""
        assert index.query({}) == frozenset()

    def test_blank_cells_are_not_indexed(self, index):
        """Test empty cells never match."""
        assert index.query({"Client_Email": ""}) == frozenset()
        assert index.values("Drive_Folder_Link") == {
            "https://drive.google.com/drive/folders/folder_northwind": 1
        }

    def test_short_rows_are_tolerated(self):
        """Test rows narrower than the header are indexed where present."""
        index = SearchIndex.from_snapshot([["Order_ID", "Status", "Notes"], ["A"], ["B", "Open"]])

        assert index.query({"Status": "open"}) == frozenset({2})
        assert index.record(1) == {"row": 1, "values": {"Order_ID": "A", "Status": None, "Notes": None}}

    def test_numbers_match_their_string_form(self):
        """Test non-string cells are indexed by their text."""
        index = SearchIndex.from_snapshot([["Qty"], [5], ["5"], [7]])
        assert index.query({"Qty": 5}) == frozenset({1, 2})

    def test_empty_snapshot(self):
        """Test an empty range builds an empty index."""
        index = SearchIndex.from_snapshot([])
        assert index.row_count == 0
        assert index.query({"Status": "x"}) == frozenset()

    def test_record_keeps_original_values(self, index):
        """Test records expose the raw cells, not normalized ones."""
        record = index.record(2)

        assert record["row"] == 2
        assert record["values"]["Order_ID"] == "ORD-2024-07-01-002"
        assert record["values"]["Client_Name"] == "Blue Harbor Trading"
        assert "Order_Status" in index

    def test_helpers(self):
        """Test normalization helpers."""
        assert normalize("  Mixed Case ") == "mixed case"
        assert is_blank(None)
        assert is_blank("   ")
        assert not is_blank(0)


class TestTableSearch:
    """Test cases for TableSearch."""

    @pytest.fixture
    def store(self):
        store = InMemoryTableStore()
        store.seed("Order_Management", test_data_factory.order_snapshot())
        return store

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("workspace-test")

    @pytest.fixture
    def search(self, store, clock, metrics):
        """Create TableSearch over a seeded store."""
        cache = SmartCache(clock=clock)
        config = test_environment.make_config(index_ttl_ms=10_000, search_result_ttl_ms=1_000)
        return TableSearch(CachedTableReader(store, cache, 60_000), config, metrics)

    @pytest.mark.asyncio
    async def test_search_returns_records(self, search):
        """Test matches come back as row records in row order."""
        result = await search.search(ORDERS, {"Order_Status": "Delivered"})

        assert result.status == ResultStatus.SUCCESS
        assert [record["row"] for record in result.data] == [4, 5]
        assert result.data[0]["values"]["Client_Name"] == "Northwind Imports"
        assert result.meta == {"cached": False, "matches": 2}

    @pytest.mark.asyncio
    async def test_repeat_search_is_cached(self, search, store, metrics):
        """Test a repeated query costs no remote read and no index build."""
        await search.search(ORDERS, {"Order_Status": "Pending"})
        result = await search.search(ORDERS, {"Order_Status": "Pending"})

        assert result.meta["cached"] is True
        assert store.calls["read_range"] == 1
        assert metrics.registry.get_sample_value("index_builds_total") == 1

    @pytest.mark.asyncio
    async def test_index_is_reused_across_queries(self, search, store, metrics):
        """Test different criteria share one index."""
        await search.search(ORDERS, {"Order_Status": "Pending"})
        await search.search(ORDERS, {"Client_Name": "Acme Ltd"})

        assert store.calls["read_range"] == 1
        assert metrics.registry.get_sample_value("index_builds_total") == 1

    @pytest.mark.asyncio
    async def test_expired_results_are_recomputed(self, search, clock):
        """Test cached results honour their own TTL."""
        await search.search(ORDERS, {"Order_Status": "Pending"})
        clock.advance(2)

        result = await search.search(ORDERS, {"Order_Status": "Pending"})

        assert result.meta["cached"] is False

    @pytest.mark.asyncio
    async def test_invalidate_forces_rebuild(self, search, store):
        """Test a changed range is visible after invalidation."""
        await search.search(ORDERS, {"Order_Status": "Pending"})
        store.seed("Order_Management", test_data_factory.status_snapshot(["Pending"]))

        search.invalidate(ORDERS)
        result = await search.search(ORDERS, {"Status": "Pending"})

        assert result.meta["matches"] == 1
        assert store.calls["read_range"] == 2

    @pytest.mark.asyncio
    async def test_drop_indexes_keeps_snapshots(self, search, store):
        """Test dropping indexes rebuilds from the cached snapshot."""
        await search.search(ORDERS, {"Order_Status": "Pending"})

        dropped = search.drop_indexes()
        await search.search(ORDERS, {"Order_Status": "Pending"})

        assert dropped == 2
        assert store.calls["read_range"] == 1
        assert search.cache.contains(keys.index_key(ORDERS))

    @pytest.mark.asyncio
    async def test_remote_failure_becomes_error_result(self, search, store):
        """Test an unreadable range is reported, not raised."""
        store.unavailable_tabs.add("Order_Management")

        result = await search.search(ORDERS, {"Order_Status": "Pending"})

        assert result.status == ResultStatus.ERROR
        assert result.error.kind == ErrorKind.REMOTE_UNAVAILABLE
        assert result.error.context["range_key"] == ORDERS

    @pytest.mark.asyncio
    async def test_find_one(self, search):
        """Test the first match is returned."""
        result = await search.find_one(ORDERS, {"Client_Name": "acme ltd"})

        assert result.ok
        assert result.data["values"]["Order_ID"] == "ORD-2024-03-15-007"

    @pytest.mark.asyncio
    async def test_find_one_without_match(self, search):
        """Test no match is a NotFound error."""
        result = await search.find_one(ORDERS, {"Client_Name": "Nobody"})

        assert result.status == ResultStatus.ERROR
        assert result.error.kind == ErrorKind.NOT_FOUND
        assert result.error.context["criteria"] == {"Client_Name": "Nobody"}
