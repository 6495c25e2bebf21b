"""
Unit tests for CollectorManager
"""
import asyncio

import pytest

from src.parcelflow.collectors.base import DataCollector
from src.parcelflow.collectors.manager import CollectorManager
from src.parcelflow.models.collection import CollectionResult
from src.parcelflow.models.source import SourceConfig


class SpyCollector(DataCollector):
    """In-memory collector recording how many collect() calls overlap"""

    def __init__(self, collector_type, available=True, delay=0.0, error=None, init_error=None):
        self.collector_type = collector_type
        self.available = available
        self.delay = delay
        self.error = error
        self.init_error = init_error
        self.initialized = False
        self.current = 0
        self.max_seen = 0
        self.started_at = []
        self.calls = []

    def get_type(self):
        return self.collector_type

    async def initialize(self):
        if self.init_error:
            raise self.init_error
        self.initialized = True

    def is_available(self):
        return self.available

    async def collect(self, source):
        self.current += 1
        self.max_seen = max(self.max_seen, self.current)
        self.started_at.append(asyncio.get_running_loop().time())
        self.calls.append(source.id)
        try:
            await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return CollectionResult(success=True, message="ok", data=[source.id], source_id=source.id)
        finally:
            self.current -= 1


def make_source(source_id, collector_type):
    return SourceConfig(id=source_id, collector_type=collector_type)


class TestRegistry:
    """Tests for collector registration"""

    def test_register_and_get(self):
        """Test collectors are retrievable by type"""
        manager = CollectorManager(rate_limit_delay=0, max_concurrent_collections=2)
        collector = SpyCollector("a")

        manager.register_collector(collector)

        assert manager.get_collector("a") is collector
        assert manager.get_collector("missing") is None
        assert manager.get_all_collectors() == [collector]

    def test_last_registration_wins(self):
        """Test a type collision replaces the earlier collector"""
        manager = CollectorManager(rate_limit_delay=0)
        first, second = SpyCollector("a"), SpyCollector("a")

        manager.register_collector(first)
        manager.register_collector(second)

        assert manager.get_collector("a") is second
        assert len(manager.get_all_collectors()) == 1

    def test_defaults_from_settings(self):
        """Test knobs default to configuration values"""
        manager = CollectorManager()
        assert manager.rate_limit_delay == 1.0
        assert manager.max_concurrent_collections == 3

    def test_invalid_ceiling(self):
        """Test the concurrency ceiling must be positive"""
        with pytest.raises(ValueError):
            CollectorManager(max_concurrent_collections=0)

    @pytest.mark.asyncio
    async def test_initialize_isolates_failures(self):
        """Test one failing initialize does not block the others"""
        manager = CollectorManager(rate_limit_delay=0)
        broken = SpyCollector("a", init_error=RuntimeError("probe exploded"))
        healthy = SpyCollector("b")
        manager.register_collector(broken)
        manager.register_collector(healthy)

        await manager.initialize_all_collectors()

        assert healthy.initialized is True
        assert broken.initialized is False


class TestExecuteCollection:
    """Tests for execute_collection()"""

    @pytest.mark.asyncio
    async def test_unknown_collector_type(self):
        """Test an unregistered type yields a structured failure"""
        manager = CollectorManager(rate_limit_delay=0)

        result = await manager.execute_collection(make_source("s1", "nope"))

        assert result.success is False
        assert "nope" in result.message
        assert result.error_type == "collector_not_found"
        assert result.source_id == "s1"

    @pytest.mark.asyncio
    async def test_unavailable_collector(self):
        """Test an unavailable collector is never called"""
        manager = CollectorManager(rate_limit_delay=0)
        collector = SpyCollector("a", available=False)
        manager.register_collector(collector)

        result = await manager.execute_collection(make_source("s1", "a"))

        assert result.success is False
        assert result.error_type == "source_unavailable"
        assert collector.calls == []

    @pytest.mark.asyncio
    async def test_success(self):
        """Test a successful run returns the collector result"""
        manager = CollectorManager(rate_limit_delay=0)
        manager.register_collector(SpyCollector("a"))

        result = await manager.execute_collection(make_source("s1", "a"))

        assert result.success is True
        assert result.data == ["s1"]
        assert manager.active_collections == 0

    @pytest.mark.asyncio
    async def test_collector_exception_converted(self):
        """Test an exception escaping collect() becomes a failure and releases the slot"""
        manager = CollectorManager(rate_limit_delay=0, max_concurrent_collections=1)
        manager.register_collector(SpyCollector("a", error=RuntimeError("scrape blew up")))
        manager.register_collector(SpyCollector("b"))

        failed = await manager.execute_collection(make_source("s1", "a"))
        after = await manager.execute_collection(make_source("s2", "b"))

        assert failed.success is False
        assert "scrape blew up" in failed.message
        assert failed.error_type == "collection_error"
        assert manager.active_collections == 0
        assert after.success is True

    @pytest.mark.asyncio
    async def test_pacing_delay_when_busy(self):
        """Test a run waits the pacing delay while another is active"""
        manager = CollectorManager(rate_limit_delay=0.1, max_concurrent_collections=3)
        collector = SpyCollector("a", delay=0.2)
        manager.register_collector(collector)

        await manager.execute_collections([make_source("s1", "a"), make_source("s2", "a")])

        first, second = sorted(collector.started_at)
        assert second - first >= 0.09


class TestExecuteCollections:
    """Tests for execute_collections()"""

    @pytest.mark.asyncio
    async def test_results_are_positional(self):
        """Test a missing type fails only its own position"""
        manager = CollectorManager(rate_limit_delay=0)
        manager.register_collector(SpyCollector("a"))
        manager.register_collector(SpyCollector("b"))

        results = await manager.execute_collections([make_source("s1", "a"), make_source("s2", "c")])

        assert len(results) == 2
        assert results[0].success is True
        assert results[0].source_id == "s1"
        assert results[1].success is False
        assert results[1].source_id == "s2"
        assert results[1].message.endswith(": c")
        assert results[1].error_type == "collector_not_found"

    @pytest.mark.asyncio
    async def test_concurrency_ceiling(self):
        """Test no more than max_concurrent_collections collect() calls overlap"""
        manager = CollectorManager(rate_limit_delay=0, max_concurrent_collections=2)
        collector = SpyCollector("a", delay=0.02)
        manager.register_collector(collector)

        sources = [make_source(f"s{i}", "a") for i in range(8)]
        results = await manager.execute_collections(sources)

        assert all(result.success for result in results)
        assert [result.source_id for result in results] == [source.id for source in sources]
        assert collector.max_seen <= 2
        assert manager.peak_active_collections == 2
        assert manager.active_collections == 0

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self):
        """Test failures stay in their own slot"""
        manager = CollectorManager(rate_limit_delay=0, max_concurrent_collections=3)
        manager.register_collector(SpyCollector("ok", delay=0.01))
        manager.register_collector(SpyCollector("bad", error=ValueError("nope")))

        results = await manager.execute_collections([
            make_source("s1", "ok"),
            make_source("s2", "bad"),
            make_source("s3", "ok"),
        ])

        assert [result.success for result in results] == [True, False, True]

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        """Test no sources yields no results"""
        manager = CollectorManager(rate_limit_delay=0)
        assert await manager.execute_collections([]) == []
