# sites/providers.py

import re
import json
import httpx
import asyncio
import aiohttp
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from sites.errors import ProviderError
from sites.themes import ThemeResolver, theme_resolver
from sites.renderer import SiteRenderer, site_renderer
from sites.models import BusinessRecord, ProviderResult, SiteArtifact
from base.utils.openai_client import OpenAIWrapper

logger = logging.getLogger("umkm.sites.providers")

SYSTEM_PROMPT = (
    "You are an expert web developer specializing in modern, responsive websites for small "
    "businesses. Always provide complete, valid HTML, CSS and JavaScript that is production-ready."
)

RESPONSE_FORMAT = """Please provide the complete code in this exact format:

===HTML===
[Complete HTML code with proper DOCTYPE, head, and body sections]
===CSS===
[Complete CSS code]
===JS===
[Complete JavaScript code]
===END==="""

MAX_CURRENT_HTML_CHARS = 20_000

_SECTION = re.compile(r'===(HTML|CSS|JS)===\s*(.*?)(?====(?:HTML|CSS|JS|END)===|\Z)', re.DOTALL)
_FENCE = re.compile(r'^```[a-zA-Z]*\s*|\s*```$')


def _products_summary(business: BusinessRecord) -> str:
    lines = []
    for group in business.products:
        names = ", ".join(i.name for i in group.items)
        lines.append(f"{group.category_name}: {names}")
    return "; ".join(lines)


def build_generation_prompt(business: BusinessRecord, custom_prompt: Optional[str] = None) -> str:
    category = business.category.value
    parts = [
        f'Create a modern, professional website for "{business.business_name}".',
        "",
        "BUSINESS DETAILS:",
        f"- Business Name: {business.business_name}",
        f"- Owner: {business.owner_name or 'Not provided'}",
        f"- Description: {business.description or 'Not provided'}",
        f"- Category: {category}",
        f"- Products/Services: {_products_summary(business)}",
        f"- Phone: {business.phone}",
        f"- Address: {business.address}",
        f"- Email: {business.email or 'Not provided'}",
        f"- WhatsApp: {business.whatsapp or 'Not provided'}",
        f"- Instagram: {business.instagram or 'Not provided'}",
    ]
    if custom_prompt:
        parts += ["", f"CUSTOM REQUIREMENTS: {custom_prompt}"]
    parts += [
        "",
        "DESIGN REQUIREMENTS:",
        "- Mobile-first responsive layout, Indonesian language copy",
        f"- Professional color scheme appropriate for a {category} business",
        "- Sections: header, hero with call-to-action, about, products/services, contact, footer",
        "- Prices in Indonesian Rupiah without decimals (Rp 15.000)",
        "",
        RESPONSE_FORMAT,
    ]
    return "\n".join(parts)


def build_modification_prompt(artifact: SiteArtifact, change_request: str) -> str:
    business = artifact.business_data
    return "\n".join([
        f'Modify the existing website for "{business.business_name}" based on the following request:',
        "",
        "MODIFICATION REQUEST:",
        change_request,
        "",
        "CURRENT WEBSITE HTML:",
        artifact.html[:MAX_CURRENT_HTML_CHARS],
        "",
        "INSTRUCTIONS:",
        "- Keep the overall structure, contact information and business details intact",
        "- Apply only the requested modifications",
        "",
        RESPONSE_FORMAT,
    ])


def parse_sections(text: str) -> ProviderResult:
    """Splits a ===HTML=== / ===CSS=== / ===JS=== response. Raises ValueError if there is no HTML."""
    sections = {}
    for name, body in _SECTION.findall(text or ""):
        sections[name.lower()] = _FENCE.sub("", body.strip()).strip()

    html = sections.get("html") or ""
    if not html:
        # Some models ignore the format and return a bare document
        stripped = _FENCE.sub("", (text or "").strip()).strip()
        if re.search(r'<html|<!doctype', stripped, re.IGNORECASE):
            html = stripped
    if not html or not re.search(r'<(html|body|!doctype)', html, re.IGNORECASE):
        raise ValueError("response has no HTML document")

    return ProviderResult(success=True, html=html, css=sections.get("css") or None, js=sections.get("js") or None)


def compose_document(result: ProviderResult) -> str:
    """Inlines CSS and JS so the artifact stays a single file."""
    html = result.html
    if result.css:
        style = f"<style>\n{result.css}\n</style>"
        if re.search(r'</head>', html, re.IGNORECASE):
            html = re.sub(r'</head>', lambda _: f"{style}\n</head>", html, count=1, flags=re.IGNORECASE)
        else:
            html = style + "\n" + html
    if result.js:
        script = f"<script>\n{result.js}\n</script>"
        if re.search(r'</body>', html, re.IGNORECASE):
            html = re.sub(r'</body>', lambda _: f"{script}\n</body>", html, count=1, flags=re.IGNORECASE)
        else:
            html = html + "\n" + script
    return html


class ContentProvider(ABC):
    """A site content generator. Must return a successful ProviderResult or raise."""

    name: str = "provider"

    @abstractmethod
    async def complete(self, prompt: str, business: BusinessRecord) -> ProviderResult:
        ...


class OpenAIProvider(ContentProvider):
    name = "openai"

    def __init__(self, wrapper: OpenAIWrapper = None, api_key: str = None, model: str = None):
        self.wrapper = wrapper or OpenAIWrapper(api_key=api_key, model=model)

    async def complete(self, prompt: str, business: BusinessRecord) -> ProviderResult:
        if not self.wrapper.api_key:
            raise ProviderError(self.name, "API key not configured")
        text = await self.wrapper.complete(SYSTEM_PROMPT, prompt)
        try:
            return parse_sections(text)
        except ValueError as e:
            raise ProviderError(self.name, str(e))


class GeminiProvider(ContentProvider):
    name = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def complete(self, prompt: str, business: BusinessRecord) -> ProviderResult:
        if not self.api_key:
            raise ProviderError(self.name, "API key not configured")

        url = f"{self.base_url}/{self.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": f"{SYSTEM_PROMPT}\n\n{prompt}"}]}],
            "generationConfig": {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 8000},
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as sess:
            async with sess.post(url, params={"key": self.api_key}, json=body) as resp:
                if resp.status != 200:
                    detail = (await resp.text())[:300]
                    raise ProviderError(self.name, f"HTTP {resp.status}: {detail}")
                data = await resp.json()

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.name, "invalid response shape")
        try:
            return parse_sections(text)
        except ValueError as e:
            raise ProviderError(self.name, str(e))


class AnthropicProvider(ContentProvider):
    name = "anthropic"
    url = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, model: str = "claude-3-5-haiku-latest", timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def complete(self, prompt: str, business: BusinessRecord) -> ProviderResult:
        if not self.api_key:
            raise ProviderError(self.name, "API key not configured")

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }
        body = {
            "model": self.model,
            "max_tokens": 8000,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.url, headers=headers, json=body)
        if resp.status_code != 200:
            raise ProviderError(self.name, f"HTTP {resp.status_code}: {resp.text[:300]}")

        try:
            text = resp.json()["content"][0]["text"]
        except (KeyError, IndexError, TypeError, json.JSONDecodeError):
            raise ProviderError(self.name, "invalid response shape")
        try:
            return parse_sections(text)
        except ValueError as e:
            raise ProviderError(self.name, str(e))


class ContentProviderChain:
    """Ordered fallback over content providers. First success wins.

    generate() always produces an artifact: when every provider fails the
    deterministic template output is returned. modify() returns None in that
    case so the caller can use its own fallback.
    """

    def __init__(
        self,
        providers: Sequence[ContentProvider] = (),
        renderer: SiteRenderer = None,
        themes: ThemeResolver = None,
        timeout: float = 30.0,
    ):
        self.providers: List[ContentProvider] = list(providers)
        self.renderer = renderer or site_renderer
        self.themes = themes or theme_resolver
        self.timeout = timeout

    async def _first_success(self, prompt: str, business: BusinessRecord, purpose: str):
        for provider in self.providers:
            try:
                logger.info("Attempting %s with %s for %s", purpose, provider.name, business.id)
                result = await asyncio.wait_for(provider.complete(prompt, business), timeout=self.timeout)
                if not result or not result.success or not result.html.strip():
                    raise ProviderError(provider.name, "empty or unsuccessful result")
                logger.info("%s succeeded with %s for %s", purpose, provider.name, business.id)
                return provider.name, result
            except asyncio.TimeoutError:
                logger.warning("%s with %s timed out after %.0fs", purpose, provider.name, self.timeout)
            except Exception as e:
                logger.warning("%s with %s failed: %s", purpose, provider.name, e)
        return None, None

    async def generate(self, business: BusinessRecord, custom_prompt: Optional[str] = None) -> SiteArtifact:
        prompt = build_generation_prompt(business, custom_prompt or business.custom_prompt)
        name, result = await self._first_success(prompt, business, "generation")
        if result is not None:
            return SiteArtifact(
                html=compose_document(result),
                business_data=business,
                generator=f"provider:{name}",
                last_request=custom_prompt or business.custom_prompt,
            )

        if self.providers:
            logger.info("All content providers failed for %s, using template", business.id)
        theme = self.themes.resolve(business.category, business.theme)
        return self.renderer.render(business.category, business, theme)

    async def modify(self, artifact: SiteArtifact, change_request: str) -> Optional[SiteArtifact]:
        if not self.providers:
            return None
        prompt = build_modification_prompt(artifact, change_request)
        name, result = await self._first_success(prompt, artifact.business_data, "modification")
        if result is None:
            return None
        return artifact.revise(compose_document(result), generator=f"provider:{name}", request=change_request)


def build_providers(settings) -> List[ContentProvider]:
    """Instantiates configured providers in the configured priority order."""
    factories = {
        "gemini": lambda: GeminiProvider(settings.gemini_api_key, timeout=settings.provider_timeout) if settings.gemini_api_key else None,
        "openai": lambda: OpenAIProvider(api_key=settings.openai_api_key) if settings.openai_api_key else None,
        "anthropic": lambda: AnthropicProvider(settings.anthropic_api_key, timeout=settings.provider_timeout) if settings.anthropic_api_key else None,
    }
    providers = []
    for name in settings.provider_order:
        factory = factories.get(name)
        if factory is None:
            logger.warning("Unknown content provider %r in PROVIDER_ORDER", name)
            continue
        provider = factory()
        if provider is not None:
            providers.append(provider)
    logger.info("Content providers enabled: %s", [p.name for p in providers] or "none (templates only)")
    return providers
