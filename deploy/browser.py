# deploy/browser.py

import asyncio
import logging
from typing import Any, Optional
from dataclasses import dataclass

logger = logging.getLogger("umkm.deploy.browser")

DOMAIN_INPUT = 'input[placeholder="Enter your domain name"]'
PASTE_CODE_TEXT = "Paste Code"
CODE_TEXTAREA = "textarea"
DEPLOY_BUTTON = 'button:has-text("Deploy")'
CONFLICT_MARKER = "Project name already exists"
SUCCESS_MARKERS = ("Successful!", "Deployment successful", "Your site is live", "Deployed successfully")


class BrowserSessionError(Exception):
    """General browser session error."""


@dataclass
class ConsoleConfig:
    console_url: str = "https://edgeone.ai/pages/drop"
    console_domain: str = "edgeone.app"
    headless: bool = True
    action_timeout_ms: int = 30000
    settle_ms: int = 5000
    viewport_width: int = 1024
    viewport_height: int = 768


@dataclass
class ConsoleAttempt:
    name: str
    conflict: bool
    url: Optional[str] = None


class ConsoleSession:
    """One hosting console page inside its own browser context."""

    def __init__(self, page: Any, config: ConsoleConfig):
        self._page = page
        self._config = config

    async def _text_visible(self, text: str) -> bool:
        try:
            return await self._page.get_by_text(text).first.is_visible()
        except Exception:
            return False

    async def _deployed_url(self, name: str) -> str:
        link = self._page.locator(f'a[href*=".{self._config.console_domain}"]')
        try:
            if await link.count():
                href = await link.first.get_attribute("href")
                if href:
                    return href
        except Exception:
            logger.debug("No deployed link on console page for %s", name)
        return f"https://{name}.{self._config.console_domain}"

    async def publish(self, name: str, html: str) -> ConsoleAttempt:
        """Submits name + markup and reports whether the console rejected the name."""
        page = self._page
        timeout = self._config.action_timeout_ms
        try:
            await page.goto(self._config.console_url, wait_until="load", timeout=timeout)
            await page.fill(DOMAIN_INPUT, name, timeout=timeout)
            await page.get_by_text(PASTE_CODE_TEXT).first.click(timeout=timeout)
            await page.fill(CODE_TEXTAREA, html, timeout=timeout)
            button = page.locator(DEPLOY_BUTTON).first
            await button.wait_for(state="visible", timeout=timeout)
            await button.click(timeout=timeout)
            await page.wait_for_timeout(self._config.settle_ms)
        except Exception as e:
            raise BrowserSessionError(f"console interaction failed for {name}: {e}") from e

        if await self._text_visible(CONFLICT_MARKER):
            return ConsoleAttempt(name=name, conflict=True)

        for marker in SUCCESS_MARKERS:
            if await self._text_visible(marker):
                logger.info("Console reported success for %s (%s)", name, marker)
                break
        else:
            logger.info("Console status unclear for %s, assuming deployed", name)
        return ConsoleAttempt(name=name, conflict=False, url=await self._deployed_url(name))


class BrowserRunner:
    """Owns the playwright driver and browser. Hands out one isolated context per session.

    Usage:
        runner = BrowserRunner(ConsoleConfig())
        try:
            async with runner.session() as console:
                attempt = await console.publish("warungbudi", html)
        finally:
            await runner.close()
    """

    def __init__(self, config: Optional[ConsoleConfig] = None):
        self._config = config or ConsoleConfig()
        self._playwright = None
        self._browser = None

    async def _ensure_playwright(self) -> None:
        if self._playwright is None:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.headless,
                args=["--no-sandbox", "--disable-dev-shm-usage"],
            )

    async def close(self) -> None:
        if self._browser:
            try:
                await self._browser.close()
            finally:
                self._browser = None
        if self._playwright:
            try:
                await self._playwright.stop()
            finally:
                self._playwright = None

    class _SessionContext:
        def __init__(self, runner: "BrowserRunner"):
            self._runner = runner
            self._context = None

        async def __aenter__(self) -> ConsoleSession:
            await self._runner._ensure_playwright()
            config = self._runner._config
            self._context = await self._runner._browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9", "Cache-Control": "no-cache"},
            )
            page = await self._context.new_page()
            return ConsoleSession(page, config)

        async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
            if self._context:
                # shield so a cancelled deploy still releases the context
                await asyncio.shield(self._context.close())
                self._context = None

    def session(self) -> "_SessionContext":
        return BrowserRunner._SessionContext(self)
