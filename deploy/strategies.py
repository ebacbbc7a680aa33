# deploy/strategies.py

import httpx
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from sites.subdomain import suffixed_variants
from sites.models import DeploymentOutcome, SiteArtifact
from sites.errors import ConflictError, DeploymentStrategyError
from deploy.browser import BrowserRunner, BrowserSessionError, ConsoleConfig

logger = logging.getLogger("umkm.deploy.strategies")

CACHE_SETTINGS = {"html": 3600, "css": 86400, "js": 86400, "images": 604800}


class DeploymentStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    async def deploy(self, business_id: str, subdomain: str, artifact: SiteArtifact) -> DeploymentOutcome:
        """Publishes the artifact under subdomain or raises DeploymentStrategyError."""


class BrowserConsoleStrategy(DeploymentStrategy):
    """Drives the hosting console in a headless browser.

    Tries the requested name, then name1..nameN when the console reports
    the name as taken or the reverse index says another business owns it.
    Each candidate gets a fresh browser context; the browser itself is
    closed when the strategy returns, whatever the outcome.
    """
    name = "browser"

    def __init__(self, store, runner_factory: Optional[Callable[[], BrowserRunner]] = None,
                 config: Optional[ConsoleConfig] = None, max_retries: int = 5):
        self.store = store
        self.config = config or ConsoleConfig()
        self.runner_factory = runner_factory or (lambda: BrowserRunner(self.config))
        self.max_retries = max_retries

    async def deploy(self, business_id: str, subdomain: str, artifact: SiteArtifact) -> DeploymentOutcome:
        candidates = [subdomain] + suffixed_variants(subdomain, self.max_retries)
        attempted = []
        runner = self.runner_factory()
        try:
            for candidate in candidates:
                attempted.append(candidate)
                if await self.store.is_taken(candidate, by_other_than=business_id):
                    logger.info("Skipping %s for %s: owned by another business", candidate, business_id)
                    continue
                try:
                    async with runner.session() as console:
                        attempt = await console.publish(candidate, artifact.html)
                except BrowserSessionError as e:
                    raise DeploymentStrategyError(self.name, str(e)) from e
                if attempt.conflict:
                    logger.info("Console reports %s as taken (attempt %d)", candidate, len(attempted))
                    continue
                return DeploymentOutcome(method=self.name, domain=candidate, url=attempt.url, attempted=attempted)
        finally:
            await runner.close()
        raise ConflictError(self.name, subdomain, attempted)


class HostingApiStrategy(DeploymentStrategy):
    name = "api"

    def __init__(self, api_url: str, api_token: str, account_id: str = "", zone_id: str = "",
                 base_domain: str = "umkm.id", timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None, store=None):
        self.api_url = api_url
        self.api_token = api_token
        self.account_id = account_id
        self.zone_id = zone_id
        self.base_domain = base_domain
        self.timeout = timeout
        self._client = client
        self.store = store

    def build_payload(self, subdomain: str, artifact: SiteArtifact) -> dict:
        return {
            "name": subdomain,
            "files": [{"name": "index.html", "content": artifact.html, "type": "text/html"}],
            "settings": {
                "domain": f"{subdomain}.{self.base_domain}",
                "ssl": True,
                "cache": dict(CACHE_SETTINGS),
            },
        }

    def build_headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_token}",
            "X-Account-ID": self.account_id,
        }
        if self.zone_id:
            headers["X-Zone-ID"] = self.zone_id
        return headers

    async def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.api_url, json=payload, headers=self.build_headers())
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.api_url, json=payload, headers=self.build_headers())

    async def deploy(self, business_id: str, subdomain: str, artifact: SiteArtifact) -> DeploymentOutcome:
        if not self.api_token:
            raise DeploymentStrategyError(self.name, "hosting API token is not configured")
        if await self.store_conflict(business_id, subdomain):
            raise ConflictError(self.name, subdomain, [subdomain])
        try:
            resp = await self._post(self.build_payload(subdomain, artifact))
        except httpx.HTTPError as e:
            raise DeploymentStrategyError(self.name, f"request failed: {e}") from e

        if resp.status_code == 409:
            raise ConflictError(self.name, subdomain, [subdomain])
        if resp.status_code >= 400:
            raise DeploymentStrategyError(self.name, f"{resp.status_code} - {resp.text[:300]}")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        url = body.get("url") if isinstance(body, dict) else None
        logger.info("Hosting API accepted %s (deployment id %s)", subdomain, body.get("id") if isinstance(body, dict) else None)
        return DeploymentOutcome(
            method=self.name,
            domain=subdomain,
            url=url or f"https://{subdomain}.{self.base_domain}",
            attempted=[subdomain],
        )

    async def store_conflict(self, business_id: str, subdomain: str) -> bool:
        if self.store is None:
            return False
        return await self.store.is_taken(subdomain, by_other_than=business_id)


def build_strategies(settings, store) -> list:
    strategies = []
    if settings.browser_enabled:
        config = ConsoleConfig(
            console_url=settings.console_url,
            console_domain=settings.console_domain,
            headless=settings.browser_headless,
        )
        strategies.append(BrowserConsoleStrategy(store, config=config, max_retries=settings.max_conflict_retries))
    api = HostingApiStrategy(
        api_url=settings.api_url,
        api_token=settings.api_token,
        account_id=settings.account_id,
        zone_id=settings.zone_id,
        base_domain=settings.base_domain,
        timeout=settings.api_timeout,
        store=store,
    )
    strategies.append(api)
    return strategies
