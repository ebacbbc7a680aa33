"""Tests for StatusStore persistence, projections and retries."""

from unittest.mock import AsyncMock

import pytest

from sites.errors import PersistenceError, SiteNotFoundError
from sites.models import DeploymentRecord, DeploymentStatus
from base.repositories.status_store import MemoryKV, StatusStore


class TestSubmission:
    @pytest.mark.asyncio
    async def test_save_submission_writes_both_namespaces(self, store, budi):
        await store.save_submission(budi, "warungpakbudiab12")
        kv = store.kv
        assert await kv.get("subdomain:warungpakbudiab12") == "biz-budi"
        doc = await kv.get("business:biz-budi")
        assert doc["businessName"] == "Warung Pak Budi"
        assert doc["status"] == "pending"
        assert doc["subdomain"] == "warungpakbudiab12"

    @pytest.mark.asyncio
    async def test_foreign_subdomain_is_never_overwritten(self, store, budi):
        await store.index_subdomain("taken", "someone-else")
        with pytest.raises(PersistenceError):
            await store.save_submission(budi, "taken")
        assert await store.owner_of("taken") == "someone-else"
        assert await store.get_document("biz-budi") is None

    @pytest.mark.asyncio
    async def test_is_taken(self, store):
        await store.index_subdomain("warung", "a")
        assert await store.is_taken("warung", by_other_than="b") is True
        assert await store.is_taken("warung", by_other_than="a") is False
        assert await store.is_taken("free", by_other_than="a") is False

    @pytest.mark.asyncio
    async def test_values_are_copied(self, store, budi):
        await store.save_submission(budi, "warung")
        doc = await store.get_document("biz-budi")
        doc["status"] = "live"
        assert (await store.get_record("biz-budi")).status == DeploymentStatus.PENDING


class TestStatusView:
    @pytest.mark.asyncio
    async def test_pending_view(self, store, budi):
        await store.save_submission(budi, "warung")
        view = await store.status_view(business_id="biz-budi")
        assert view["status"] == "pending"
        assert view["progress"] == "25%"
        assert view["processingTime"] is None
        assert "url" not in view

    @pytest.mark.asyncio
    async def test_lookup_by_subdomain(self, store, budi):
        await store.save_submission(budi, "warung")
        view = await store.status_view(subdomain="warung")
        assert view["businessId"] == "biz-budi"
        assert view["businessName"] == "Warung Pak Budi"

    @pytest.mark.asyncio
    async def test_live_view(self, store, budi):
        await store.save_submission(budi, "warung")
        record = DeploymentRecord(
            business_id="biz-budi", subdomain="warung", status=DeploymentStatus.LIVE,
            domain="warung1", url="https://warung1.edgeone.app", deployment_method="browser",
            processing_started_at=1_000, deployed_at=4_500,
        )
        await store.save_record(record)
        view = await store.status_view(business_id="biz-budi")
        assert view["progress"] == "100%"
        assert view["message"] == "Website berhasil dibuat!"
        assert view["url"] == "https://warung1.edgeone.app"
        assert view["domain"] == "warung1"
        assert view["processingTime"] == 3_500

    @pytest.mark.asyncio
    async def test_error_view(self, store, budi):
        await store.save_submission(budi, "warung")
        record = DeploymentRecord(
            business_id="biz-budi", subdomain="warung", status=DeploymentStatus.ERROR,
            error="All deployment methods failed", processing_started_at=1_000, error_at=2_000,
        )
        await store.save_record(record)
        view = await store.status_view(business_id="biz-budi")
        assert view["progress"] == "0%"
        assert view["error"] == "All deployment methods failed"

    @pytest.mark.asyncio
    async def test_unknown_business(self, store):
        with pytest.raises(SiteNotFoundError):
            await store.status_view(business_id="missing")
        with pytest.raises(SiteNotFoundError):
            await store.status_view(subdomain="missing")


class TestProcessingTime:
    def test_not_started(self):
        assert DeploymentRecord(business_id="a", subdomain="a").processing_time() is None

    def test_never_negative(self):
        record = DeploymentRecord(business_id="a", subdomain="a", processing_started_at=5_000, deployed_at=4_000)
        assert record.processing_time() == 0

    def test_running_uses_now(self):
        record = DeploymentRecord(business_id="a", subdomain="a", processing_started_at=5_000)
        assert record.processing_time(now=7_000) == 2_000

    def test_error_end(self):
        record = DeploymentRecord(business_id="a", subdomain="a", processing_started_at=5_000, error_at=5_250)
        assert record.processing_time(now=99_000) == 250


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, budi):
        kv = MemoryKV()
        kv.put = AsyncMock(side_effect=[ConnectionError("blip"), None, None])
        store = StatusStore(kv)
        await store.index_subdomain("warung", "biz-budi")
        assert kv.put.await_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises(self):
        kv = MemoryKV()
        kv.put = AsyncMock(side_effect=ConnectionError("down"))
        store = StatusStore(kv)
        with pytest.raises(PersistenceError):
            await store.index_subdomain("warung", "biz-budi")
        assert kv.put.await_count == 3


class TestLocks:
    def test_lock_is_per_business(self, store):
        assert store.lock("a") is store.lock("a")
        assert store.lock("a") is not store.lock("b")
