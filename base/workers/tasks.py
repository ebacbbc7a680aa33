# base/workers/tasks.py

import asyncio
import logging
from typing import Optional

from sites.models import BusinessRecord, DeploymentRecord, DeploymentStatus
from deploy.orchestrator import DeploymentOrchestrator
from sites.providers import ContentProviderChain
from base.storage.artifact_store import ArtifactStore
from base.repositories.status_store import StatusStore

logger = logging.getLogger("umkm.workers.tasks")

PIPELINE_TIMEOUT = 300.0


async def _generate_and_deploy(
    business_id: str,
    store: StatusStore,
    artifacts: ArtifactStore,
    chain: ContentProviderChain,
    orchestrator: DeploymentOrchestrator,
    resubmitted: Optional[BusinessRecord] = None,
) -> Optional[DeploymentRecord]:
    if resubmitted is not None:
        await store.update_business(resubmitted)
        logger.info("Applied re-submitted fields for %s", business_id)

    business = await store.get_business(business_id)
    record = await store.get_record(business_id)
    if business is None or record is None:
        logger.warning("Pipeline skipped: no stored business %s", business_id)
        return None

    record = await orchestrator.mark_processing(business_id, record.subdomain)

    artifact = await chain.generate(business, business.custom_prompt)
    await artifacts.save(business_id, artifact)
    logger.info("Artifact for %s generated by %s", business_id, artifact.generator)

    return await orchestrator.deploy(business_id, record.subdomain, artifact, business)


async def run_site_pipeline(
    business_id: str,
    store: StatusStore,
    artifacts: ArtifactStore,
    chain: ContentProviderChain,
    orchestrator: DeploymentOrchestrator,
    timeout: float = PIPELINE_TIMEOUT,
    resubmitted: Optional[BusinessRecord] = None,
) -> Optional[DeploymentRecord]:
    """Background worker: generate the site, store the artifact, deploy it.

    Runs for the same business are serialized by the store's per-business
    lock. A re-submission passes its normalized record as `resubmitted`,
    which is written only once the lock is held. Whatever happens inside,
    the record ends in a terminal state.
    """
    logger.info("BG TASK START: run_site_pipeline for %s", business_id)

    async with store.lock(business_id):
        try:
            return await asyncio.wait_for(
                _generate_and_deploy(business_id, store, artifacts, chain, orchestrator, resubmitted),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            failure = f"Pipeline timed out after {timeout:g}s"
            logger.error("%s for %s", failure, business_id)
        except Exception as e:
            failure = f"Pipeline failed: {e}"
            logger.exception("Pipeline failed for %s", business_id)

        try:
            record = await store.get_record(business_id)
            if record is None or record.status == DeploymentStatus.LIVE:
                return record
            return await orchestrator.mark_error(record, failure)
        except Exception:
            logger.exception("Could not persist terminal error state for %s", business_id)
            return None
