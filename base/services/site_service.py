# base/services/site_service.py

import asyncio
import logging
from typing import Optional
from fastapi import BackgroundTasks

from sites.themes import ThemeResolver
from sites.subdomain import allocate_subdomain
from sites.validation import BusinessValidator
from sites.providers import ContentProviderChain
from sites.modification import ModificationEngine
from sites.errors import SiteNotFoundError
from sites.models import BusinessRecord
from deploy.orchestrator import DeploymentOrchestrator
from base.storage.artifact_store import ArtifactStore
from base.repositories.status_store import StatusStore
from base.workers.tasks import PIPELINE_TIMEOUT, run_site_pipeline

logger = logging.getLogger("umkm.sites.service")


class SiteService:
    def __init__(
        self,
        store: StatusStore,
        artifacts: ArtifactStore,
        chain: ContentProviderChain,
        orchestrator: DeploymentOrchestrator,
        engine: Optional[ModificationEngine] = None,
        validator: Optional[BusinessValidator] = None,
        themes: Optional[ThemeResolver] = None,
        pipeline_timeout: float = PIPELINE_TIMEOUT,
    ):
        self.store = store
        self.artifacts = artifacts
        self.chain = chain
        self.orchestrator = orchestrator
        self.engine = engine or ModificationEngine(chain)
        self.validator = validator or BusinessValidator()
        self.themes = themes or chain.themes
        self.pipeline_timeout = pipeline_timeout
        self._tasks = set()

    def _schedule(
        self,
        business_id: str,
        background_tasks: Optional[BackgroundTasks] = None,
        resubmitted: Optional[BusinessRecord] = None,
    ) -> None:
        kwargs = dict(
            business_id=business_id,
            store=self.store,
            artifacts=self.artifacts,
            chain=self.chain,
            orchestrator=self.orchestrator,
            timeout=self.pipeline_timeout,
            resubmitted=resubmitted,
        )
        if background_tasks is not None:
            logger.info("scheduling pipeline via BackgroundTasks for %s", business_id)
            background_tasks.add_task(run_site_pipeline, **kwargs)
        else:
            logger.info("scheduling pipeline via asyncio.create_task for %s", business_id)
            task = asyncio.create_task(run_site_pipeline(**kwargs))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def submit(self, raw: dict, background_tasks: Optional[BackgroundTasks] = None) -> dict:
        """Validates, stores a pending record and queues generation + deployment.
        Raises ValidationError before anything is written.
        """
        business = self.validator.normalize(raw)
        subdomain = await allocate_subdomain(business.business_name, self.store)
        await self.store.save_submission(business, subdomain)
        self._schedule(business.id, background_tasks)
        return {
            "success": True,
            "businessId": business.id,
            "subdomain": subdomain,
            "status": "processing",
            "message": "Website sedang dibuat...",
        }

    async def resubmit(self, business_id: str, raw: dict, background_tasks: Optional[BackgroundTasks] = None) -> dict:
        """Validates edited fields now; the stored record is replaced by the
        worker once it holds the business lock.
        """
        record = await self.store.get_record(business_id)
        if record is None:
            raise SiteNotFoundError(business_id)
        business = self.validator.normalize(raw, business_id=business_id)
        self._schedule(business_id, background_tasks, resubmitted=business)
        return {
            "success": True,
            "businessId": business_id,
            "subdomain": record.subdomain,
            "status": "processing",
            "message": "Website sedang dibuat...",
        }

    async def get_status(self, business_id: Optional[str] = None, subdomain: Optional[str] = None) -> dict:
        return await self.store.status_view(business_id=business_id, subdomain=subdomain)

    async def get_artifact(self, business_id: str):
        artifact = await self.artifacts.load(business_id)
        if artifact is None:
            raise SiteNotFoundError(business_id)
        return artifact

    async def modify(self, business_id: str, request: str) -> dict:
        async with self.store.lock(business_id):
            artifact = await self.get_artifact(business_id)
            business = await self.store.get_business(business_id) or artifact.business_data
            result = await self.engine.modify(artifact, request, business)
            if result.changed:
                await self.artifacts.save(business_id, result.artifact)
        if not result.understood and result.method == "none":
            logger.info("Modification not understood for %s: %r", business_id, request)
        return {
            "success": result.changed,
            "understood": result.understood,
            "method": result.method,
            "applied": result.applied,
            "version": result.artifact.version,
            "message": result.message,
            "suggestions": [] if result.understood else self.engine.suggestions(),
        }

    def list_themes(self) -> dict:
        return self.themes.available()

    def suggestions(self) -> list:
        return self.engine.suggestions()
