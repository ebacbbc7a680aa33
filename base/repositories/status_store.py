# base/repositories/status_store.py

import copy
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Optional
from tenacity import retry, wait_exponential, stop_after_attempt

from sites.errors import PersistenceError, SiteNotFoundError
from sites.models import BusinessRecord, DeploymentRecord, DeploymentStatus, now_ms

logger = logging.getLogger("umkm.repositories.status")

BUSINESS_PREFIX = "business:"
SUBDOMAIN_PREFIX = "subdomain:"

STATUS_PROGRESS = {
    DeploymentStatus.PENDING: "25%",
    DeploymentStatus.PROCESSING: "75%",
    DeploymentStatus.LIVE: "100%",
    DeploymentStatus.ERROR: "0%",
}

STATUS_MESSAGES = {
    DeploymentStatus.PENDING: "Menunggu antrian...",
    DeploymentStatus.PROCESSING: "Website sedang dibuat...",
    DeploymentStatus.LIVE: "Website berhasil dibuat!",
    DeploymentStatus.ERROR: "Gagal membuat website",
}


class KVStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        ...


class MemoryKV(KVStore):
    """In-process backend. Values are deep-copied so callers never share state with the store."""

    def __init__(self):
        self._data = {}

    async def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def put(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def keys(self):
        return list(self._data)


class StatusStore:
    def __init__(self, kv: KVStore):
        self.kv = kv
        # run locks serialize whole pipeline runs, write locks guard read-modify-write
        self._run_locks = defaultdict(asyncio.Lock)
        self._write_locks = defaultdict(asyncio.Lock)

    def lock(self, business_id: str) -> asyncio.Lock:
        return self._run_locks[business_id]

    @retry(wait=wait_exponential(multiplier=0.1, min=0.1, max=2), stop=stop_after_attempt(3), reraise=True)
    async def _put_with_retry(self, key: str, value: Any) -> None:
        await self.kv.put(key, value)

    async def _put(self, key: str, value: Any) -> None:
        try:
            await self._put_with_retry(key, value)
        except Exception as e:
            logger.exception("Persisting %s failed after retries", key)
            raise PersistenceError(f"could not persist {key}: {e}") from e

    async def get_document(self, business_id: str) -> Optional[dict]:
        return await self.kv.get(f"{BUSINESS_PREFIX}{business_id}")

    async def get_business(self, business_id: str) -> Optional[BusinessRecord]:
        doc = await self.get_document(business_id)
        return BusinessRecord.model_validate(doc) if doc else None

    async def get_record(self, business_id: str) -> Optional[DeploymentRecord]:
        doc = await self.get_document(business_id)
        return DeploymentRecord.model_validate(doc) if doc else None

    async def owner_of(self, subdomain: str) -> Optional[str]:
        return await self.kv.get(f"{SUBDOMAIN_PREFIX}{subdomain}")

    async def is_taken(self, subdomain: str, by_other_than: Optional[str] = None) -> bool:
        owner = await self.owner_of(subdomain)
        return owner is not None and owner != by_other_than

    async def index_subdomain(self, subdomain: str, business_id: str) -> None:
        owner = await self.owner_of(subdomain)
        if owner is not None and owner != business_id:
            raise PersistenceError(f"subdomain '{subdomain}' belongs to another business")
        await self._put(f"{SUBDOMAIN_PREFIX}{subdomain}", business_id)

    async def save_submission(self, business: BusinessRecord, subdomain: str) -> DeploymentRecord:
        """Writes a fresh business document with a pending deployment and claims the subdomain."""
        record = DeploymentRecord(business_id=business.id, subdomain=subdomain)
        async with self._write_locks[business.id]:
            await self.index_subdomain(subdomain, business.id)
            await self._put(f"{BUSINESS_PREFIX}{business.id}", {**business.to_doc(), **record.to_doc()})
        logger.info("Stored submission %s (%s)", business.id, subdomain)
        return record

    async def update_business(self, business: BusinessRecord) -> DeploymentRecord:
        """Replaces business fields of an existing document and resets deployment to pending."""
        async with self._write_locks[business.id]:
            doc = await self.get_document(business.id)
            if not doc:
                raise SiteNotFoundError(business.id)
            previous = DeploymentRecord.model_validate(doc)
            record = DeploymentRecord(
                business_id=business.id,
                subdomain=previous.subdomain,
                domain=previous.domain,
                url=previous.url,
                created_at=previous.created_at,
            )
            fresh = {**business.to_doc(), "createdAt": previous.created_at}
            await self._put(f"{BUSINESS_PREFIX}{business.id}", {**fresh, **record.to_doc()})
        return record

    async def save_record(self, record: DeploymentRecord) -> DeploymentRecord:
        async with self._write_locks[record.business_id]:
            doc = await self.get_document(record.business_id) or {}
            doc.update(record.to_doc())
            await self._put(f"{BUSINESS_PREFIX}{record.business_id}", doc)
        logger.info("Deployment %s -> %s", record.business_id, record.status.value)
        return record

    async def resolve_id(self, business_id: Optional[str] = None, subdomain: Optional[str] = None) -> str:
        if business_id:
            return business_id
        if subdomain:
            owner = await self.owner_of(subdomain)
            if owner:
                return owner
        raise SiteNotFoundError(business_id or subdomain or "")

    async def status_view(self, business_id: Optional[str] = None, subdomain: Optional[str] = None) -> dict:
        business_id = await self.resolve_id(business_id, subdomain)
        doc = await self.get_document(business_id)
        if not doc:
            raise SiteNotFoundError(business_id)
        record = DeploymentRecord.model_validate(doc)

        view = {
            "businessId": record.business_id,
            "subdomain": record.subdomain,
            "domain": record.domain,
            "businessName": doc.get("businessName"),
            "status": record.status.value,
            "progress": STATUS_PROGRESS[record.status],
            "message": STATUS_MESSAGES[record.status],
            "createdAt": record.created_at,
            "processingTime": record.processing_time(now_ms()),
        }
        if record.status == DeploymentStatus.LIVE:
            view.update({
                "url": record.url,
                "deployedAt": record.deployed_at,
                "deploymentMethod": record.deployment_method,
            })
        if record.status == DeploymentStatus.ERROR:
            view.update({"error": record.error, "errorAt": record.error_at})
        return view
