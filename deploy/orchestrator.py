# deploy/orchestrator.py

import asyncio
import logging
from typing import Dict, List, Optional

from deploy.strategies import DeploymentStrategy
from sites.errors import DeploymentStrategyError
from sites.models import BusinessRecord, DeploymentRecord, DeploymentStatus, SiteArtifact, now_ms

logger = logging.getLogger("umkm.deploy.orchestrator")

DEFAULT_STRATEGY_TIMEOUT = 60.0


class DeploymentOrchestrator:
    """Runs deployment strategies in order until one publishes the site.

    Callers serialize runs per business (StatusStore.lock); the orchestrator
    itself only persists each state transition as it happens.
    """

    def __init__(self, store, strategies: List[DeploymentStrategy], timeouts: Optional[Dict[str, float]] = None):
        self.store = store
        self.strategies = list(strategies)
        self.timeouts = dict(timeouts or {})

    def timeout_for(self, strategy: DeploymentStrategy) -> float:
        return self.timeouts.get(strategy.name, DEFAULT_STRATEGY_TIMEOUT)

    async def mark_processing(self, business_id: str, subdomain: str) -> DeploymentRecord:
        record = await self.store.get_record(business_id) or DeploymentRecord(business_id=business_id, subdomain=subdomain)
        record = record.model_copy(update={
            "status": DeploymentStatus.PROCESSING,
            "processing_started_at": record.processing_started_at or now_ms(),
            "error": None,
            "error_at": None,
            "deployed_at": None,
        })
        return await self.store.save_record(record)

    async def mark_error(self, record: DeploymentRecord, message: str) -> DeploymentRecord:
        record = record.model_copy(update={
            "status": DeploymentStatus.ERROR,
            "error": message,
            "error_at": now_ms(),
        })
        return await self.store.save_record(record)

    async def _run_strategy(self, strategy: DeploymentStrategy, business_id: str, subdomain: str, artifact: SiteArtifact):
        timeout = self.timeout_for(strategy)
        try:
            outcome = await asyncio.wait_for(strategy.deploy(business_id, subdomain, artifact), timeout=timeout)
        except asyncio.TimeoutError:
            return None, f"{strategy.name}: timed out after {timeout:g}s"
        except DeploymentStrategyError as e:
            return None, str(e)
        except Exception as e:
            logger.exception("Strategy %s crashed for %s", strategy.name, business_id)
            return None, f"{strategy.name}: {e}"

        if await self.store.is_taken(outcome.domain, by_other_than=business_id):
            return None, f"{strategy.name}: '{outcome.domain}' belongs to another business"
        return outcome, None

    async def deploy(self, business_id: str, subdomain: str, artifact: SiteArtifact,
                     business: Optional[BusinessRecord] = None) -> DeploymentRecord:
        record = await self.mark_processing(business_id, subdomain)
        logger.info("Deploying %s as %s (%s)", business_id, subdomain,
                    business.business_name if business else "unknown business")

        failures = []
        for strategy in self.strategies:
            outcome, failure = await self._run_strategy(strategy, business_id, subdomain, artifact)
            if outcome is None:
                logger.warning("Deployment strategy failed for %s: %s", business_id, failure)
                failures.append(failure)
                continue

            await self.store.index_subdomain(outcome.domain, business_id)
            record = record.model_copy(update={
                "status": DeploymentStatus.LIVE,
                "domain": outcome.domain,
                "url": outcome.url,
                "deployed_at": outcome.deployed_at,
                "deployment_method": outcome.method,
                "error": None,
                "error_at": None,
            })
            logger.info("Site %s live at %s via %s", business_id, outcome.url, outcome.method)
            return await self.store.save_record(record)

        message = "All deployment methods failed: " + "; ".join(failures or ["no deployment strategy configured"])
        return await self.mark_error(record, message)
