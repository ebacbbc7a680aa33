"""Tests for SiteRenderer and the link/currency helpers."""

import pytest

from sites.errors import RenderError
from sites.models import Category
from sites.themes import theme_resolver
from sites.validation import normalize_business
from sites.renderer import SiteRenderer, find_unresolved_tokens, format_rupiah, maps_url, whatsapp_url


class TestHelpers:
    @pytest.mark.parametrize("amount,expected", [
        (0, "Rp 0"),
        (15000, "Rp 15.000"),
        (1250000, "Rp 1.250.000"),
        (15000.6, "Rp 15.001"),
    ])
    def test_format_rupiah(self, amount, expected):
        assert format_rupiah(amount) == expected

    @pytest.mark.parametrize("number,expected", [
        ("081234567890", "https://wa.me/6281234567890"),
        ("6281234567890", "https://wa.me/6281234567890"),
        ("+62 812-3456-7890", "https://wa.me/6281234567890"),
        ("81234567890", "https://wa.me/6281234567890"),
    ])
    def test_whatsapp_url_prefix(self, number, expected):
        assert whatsapp_url(number) == expected

    def test_whatsapp_url_empty(self):
        assert whatsapp_url("") is None

    def test_maps_url_encodes_address(self):
        assert maps_url("Jl. Malioboro No. 123") == "https://maps.google.com/?q=Jl.+Malioboro+No.+123"


class TestSiteRenderer:
    def setup_method(self):
        self.renderer = SiteRenderer()

    def _render(self, business):
        theme = theme_resolver.resolve(business.category, business.theme)
        return self.renderer.render(business.category, business, theme)

    def test_renders_budi(self, budi):
        artifact = self._render(budi)
        html = artifact.html
        assert "Warung Pak Budi" in html
        assert "Nasi Gudeg" in html
        assert "Rp 15.000" in html
        assert "https://wa.me/6281234567890" in html
        assert "maps.google.com" in html
        assert artifact.version == 1
        assert artifact.generator == "template"
        assert artifact.business_data.id == "biz-budi"

    @pytest.mark.parametrize("category", list(Category))
    def test_no_unresolved_tokens_in_any_category(self, full_submission, category):
        full_submission["category"] = category.value
        business = normalize_business(full_submission)
        html = self._render(business).html
        assert find_unresolved_tokens(html) == []
        assert "Bakpia" in html
        assert "Rp 35.000" in html

    def test_optional_blocks_omitted(self, budi):
        html = self._render(budi).html
        assert "instagram.com" not in html
        assert "mailto:" not in html

    def test_optional_blocks_present(self, full_submission):
        html = self._render(normalize_business(full_submission)).html
        assert "https://instagram.com/tokosarirasa" in html
        assert "mailto:sari@tokosarirasa.co.id" in html
        assert "https://wa.me/6281298765432" in html

    def test_zero_price_has_no_price_label(self, full_submission):
        html = self._render(normalize_business(full_submission)).html
        assert "Wedang Uwuh" in html
        assert "Rp 0" not in html

    def test_user_braces_cannot_form_tokens(self, budi_submission):
        budi_submission["description"] = "Promo {{DISKON}} setiap hari Jumat"
        business = normalize_business(budi_submission)
        html = self._render(business).html
        assert find_unresolved_tokens(html) == []
        assert "DISKON" in html

    def test_theme_colors_applied(self, budi):
        html = self._render(budi).html
        assert "--primary: #ff6b6b" in html

    def test_leftover_token_raises(self, tmp_path, budi):
        (tmp_path / "restaurant.html").write_text("<html>{% raw %}{{LEFTOVER}}{% endraw %}</html>", encoding="utf-8")
        renderer = SiteRenderer(templates_dir=tmp_path)
        with pytest.raises(RenderError):
            renderer.render(budi.category, budi, theme_resolver.resolve(budi.category))
