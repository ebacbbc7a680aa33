"""Tests for ModificationEngine and its rule table."""

import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from sites.themes import theme_resolver
from sites.renderer import site_renderer
from sites.errors import ModificationError
from sites.modification import (
    MAX_FONT_PX,
    MIN_FONT_PX,
    NOT_UNDERSTOOD_MESSAGE,
    ModificationEngine,
    ModificationRule,
    normalize_request,
    scale_fonts_up,
)

FONT_PX = re.compile(r'font-size:\s*(\d+(?:\.\d+)?)px')


def font_sizes(html):
    return [float(v) for v in FONT_PX.findall(html)]


@pytest.fixture
def artifact(budi):
    return site_renderer.render(budi.category, budi, theme_resolver.resolve(budi.category))


class TestRules:
    """Rule table behaviour without content providers."""

    def setup_method(self):
        self.engine = ModificationEngine()

    @pytest.mark.asyncio
    async def test_color_change(self, artifact, budi):
        result = await self.engine.modify(artifact, "change color to blue", budi)
        assert result.understood and result.changed
        assert "--primary: #3b82f6" in result.artifact.html
        assert result.artifact.version == artifact.version + 1
        assert "color:blue" in result.applied

    @pytest.mark.asyncio
    async def test_indonesian_keyword(self, artifact, budi):
        result = await self.engine.modify(artifact, "ganti warna jadi hijau", budi)
        assert "--primary: #10b981" in result.artifact.html
        assert "color:rotate" not in result.applied

    @pytest.mark.asyncio
    async def test_generic_color_change_rotates(self, artifact, budi):
        result = await self.engine.modify(artifact, "please change color", budi)
        assert result.understood and result.changed
        assert result.applied == ["color:rotate"]

    @pytest.mark.asyncio
    async def test_named_color_wins_over_rotation(self, artifact, budi):
        result = await self.engine.modify(artifact, "change color to blue", budi)
        assert "color:rotate" not in result.applied
        assert "--primary: #3b82f6" in result.artifact.html

    @pytest.mark.asyncio
    async def test_plain_besar_kecil_keywords(self, artifact, budi):
        bigger = await self.engine.modify(artifact, "ukuran besar", budi)
        assert bigger.understood
        assert "font:bigger" in bigger.applied
        smaller = await self.engine.modify(artifact, "tulisan kecil", budi)
        assert "font:smaller" in smaller.applied

    @pytest.mark.asyncio
    async def test_rules_compose(self, artifact, budi):
        result = await self.engine.modify(artifact, "make it red and add contact form", budi)
        assert "color:red" in result.applied
        assert "add:contact-form" in result.applied
        assert "--primary: #ef4444" in result.artifact.html
        assert 'class="contact-form"' in result.artifact.html

    @pytest.mark.asyncio
    async def test_centered_does_not_trigger_red(self, artifact, budi):
        result = await self.engine.modify(artifact, "make the text centered", budi)
        assert "color:red" not in result.applied
        assert "align:center" in result.applied

    @pytest.mark.asyncio
    async def test_bigger_font_grows_every_size(self, artifact, budi):
        before = font_sizes(artifact.html)
        result = await self.engine.modify(artifact, "bigger font please", budi)
        after = font_sizes(result.artifact.html)
        assert len(before) == len(after)
        assert all(a >= b for a, b in zip(after, before))
        assert any(a > b for a, b in zip(after, before))

    @pytest.mark.asyncio
    async def test_bigger_font_is_bounded(self, artifact, budi):
        current = artifact
        for _ in range(30):
            current = (await self.engine.modify(current, "bigger font", budi)).artifact
        sizes = font_sizes(current.html)
        assert max(sizes) <= MAX_FONT_PX
        # a further request changes nothing once every size is capped
        again = await self.engine.modify(current, "bigger font", budi)
        assert again.changed is False

    @pytest.mark.asyncio
    async def test_smaller_font_has_floor(self, artifact, budi):
        current = artifact
        for _ in range(30):
            current = (await self.engine.modify(current, "smaller font", budi)).artifact
        assert min(font_sizes(current.html)) >= MIN_FONT_PX

    @pytest.mark.asyncio
    async def test_insert_is_idempotent(self, artifact, budi):
        once = (await self.engine.modify(artifact, "add business hours", budi)).artifact
        twice = (await self.engine.modify(once, "add business hours", budi)).artifact
        assert twice.html.count('class="business-hours"') == 1

    @pytest.mark.asyncio
    async def test_social_links_use_business_data(self, artifact, budi):
        html = (await self.engine.modify(artifact, "add social media links", budi)).artifact.html
        assert "https://wa.me/6281234567890" in html

    @pytest.mark.asyncio
    async def test_product_showcase(self, artifact, budi):
        html = (await self.engine.modify(artifact, "add product showcase", budi)).artifact.html
        assert 'class="product-showcase"' in html
        assert "Rp 15.000" in html

    @pytest.mark.asyncio
    async def test_presets_replace_each_other(self, artifact, budi):
        modern = (await self.engine.modify(artifact, "make it modern", budi)).artifact
        elegant = (await self.engine.modify(modern, "make it elegant", budi)).artifact
        assert elegant.html.count('data-umkm-rule="preset"') == 1
        assert "/* elegant */" in elegant.html

    @pytest.mark.asyncio
    async def test_not_understood(self, artifact, budi):
        result = await self.engine.modify(artifact, "please make it pop like a firework", budi)
        assert result.understood is False
        assert result.changed is False
        assert result.message == NOT_UNDERSTOOD_MESSAGE
        assert result.artifact.html == artifact.html
        assert result.artifact.version == artifact.version

    @pytest.mark.asyncio
    async def test_empty_request(self, artifact, budi):
        result = await self.engine.modify(artifact, "   ", budi)
        assert result.understood is False

    @pytest.mark.asyncio
    async def test_failing_rule_is_skipped(self, artifact, budi):
        def explode(html, business):
            raise ModificationError("nope")

        rules = (
            ModificationRule("explode", ("blue",), explode),
            ModificationRule("bold", ("bold",), lambda html, b: html.replace("</head>", "<!-- bold --></head>")),
        )
        result = await ModificationEngine(rules=rules).modify(artifact, "blue and bold", budi)
        assert result.applied == ["bold"]
        assert "<!-- bold -->" in result.artifact.html

    def test_font_rule_without_px_adds_style(self):
        html = "<html><head></head><body><p style='font-size: 1rem'>x</p></body></html>"
        assert 'data-umkm-rule="font-scale"' in scale_fonts_up(html, None)

    def test_normalize_request(self):
        assert normalize_request("Make it BLUE!!") == " make it blue "

    def test_suggestions(self):
        assert any("contact form" in s for s in self.engine.suggestions())


class TestProviderFirst:
    @pytest.mark.asyncio
    async def test_provider_result_used(self, artifact, budi):
        revised = artifact.revise("<html><body>new</body></html>", generator="provider:gemini", request="x")
        chain = MagicMock()
        chain.modify = AsyncMock(return_value=revised)
        result = await ModificationEngine(chain).modify(artifact, "make it blue", budi)
        assert result.method == "provider:gemini"
        assert result.artifact.version == artifact.version + 1

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_to_rules(self, artifact, budi):
        chain = MagicMock()
        chain.modify = AsyncMock(return_value=None)
        result = await ModificationEngine(chain).modify(artifact, "make it blue", budi)
        assert result.method == "rules"
        assert "--primary: #3b82f6" in result.artifact.html
