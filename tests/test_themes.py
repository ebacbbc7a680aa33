"""Tests for ThemeResolver."""

import pytest

from sites.models import Category
from sites.themes import CATEGORY_THEMES, NAMED_THEMES, ThemeResolver


class TestThemeResolver:
    def setup_method(self):
        self.resolver = ThemeResolver()

    @pytest.mark.parametrize("category", list(Category))
    def test_no_name_returns_category_default(self, category):
        theme = self.resolver.resolve(category)
        assert theme.model_dump() == CATEGORY_THEMES[category.value]

    def test_named_theme_wins(self):
        theme = self.resolver.resolve(Category.RESTAURANT, "elegant")
        assert theme.model_dump() == NAMED_THEMES["elegant"]

    def test_partial_named_theme_merges_over_default(self):
        resolver = ThemeResolver(named_themes={"sunny": {"primary": "#ffcc00"}})
        theme = resolver.resolve(Category.SERVICE, "sunny")
        assert theme.primary == "#ffcc00"
        assert theme.secondary == CATEGORY_THEMES["service"]["secondary"]

    def test_unknown_name_is_exact_default(self):
        theme = self.resolver.resolve(Category.RETAIL, "no-such-theme")
        assert theme.model_dump() == CATEGORY_THEMES["retail"]

    def test_unknown_category_uses_other(self):
        theme = self.resolver.resolve("bakery")
        assert theme.model_dump() == CATEGORY_THEMES["other"]

    def test_resolve_does_not_mutate_defaults(self):
        before = dict(CATEGORY_THEMES["restaurant"])
        self.resolver.resolve(Category.RESTAURANT, "modern")
        assert CATEGORY_THEMES["restaurant"] == before

    def test_available_lists_named_themes(self):
        names = self.resolver.available()
        assert {"default", "modern", "elegant", "vibrant", "minimal"} <= set(names)
