# sites/themes.py

import logging
from typing import Optional

from sites.models import Category, Theme

logger = logging.getLogger("umkm.sites.themes")

CATEGORY_THEMES = {
    Category.RESTAURANT.value: {
        "primary": "#ff6b6b",
        "secondary": "#ee5a24",
        "accent": "#f39c12",
        "background": "#f8f9fa",
        "text": "#2c3e50",
        "success": "#27ae60",
    },
    Category.RETAIL.value: {
        "primary": "#3498db",
        "secondary": "#2980b9",
        "accent": "#e74c3c",
        "background": "#ecf0f1",
        "text": "#2c3e50",
        "success": "#27ae60",
    },
    Category.SERVICE.value: {
        "primary": "#9b59b6",
        "secondary": "#8e44ad",
        "accent": "#f39c12",
        "background": "#f8f9fa",
        "text": "#2c3e50",
        "success": "#27ae60",
    },
    Category.OTHER.value: {
        "primary": "#34495e",
        "secondary": "#2c3e50",
        "accent": "#e74c3c",
        "background": "#ecf0f1",
        "text": "#2c3e50",
        "success": "#27ae60",
    },
}

# Named overrides. A partial entry only replaces the keys it names.
NAMED_THEMES = {
    "modern": {
        "primary": "#667eea",
        "secondary": "#764ba2",
        "accent": "#f093fb",
        "background": "#f8f9fa",
        "text": "#2d3748",
        "success": "#48bb78",
    },
    "elegant": {
        "primary": "#2d3748",
        "secondary": "#4a5568",
        "accent": "#ed8936",
        "background": "#ffffff",
        "text": "#1a202c",
        "success": "#38a169",
    },
    "vibrant": {
        "primary": "#ff6b6b",
        "secondary": "#4ecdc4",
        "accent": "#45b7d1",
        "background": "#f7f1e3",
        "text": "#2c3e50",
        "success": "#26de81",
    },
    "minimal": {
        "primary": "#000000",
        "secondary": "#666666",
        "accent": "#ff6b6b",
        "background": "#ffffff",
        "text": "#333333",
        "success": "#00d4aa",
    },
}

THEME_LABELS = {
    "default": "Default (Category-based)",
    "modern": "Modern",
    "elegant": "Elegant",
    "vibrant": "Vibrant",
    "minimal": "Minimal",
}


class ThemeResolver:
    def __init__(self, category_themes: dict = None, named_themes: dict = None):
        self.category_themes = category_themes or CATEGORY_THEMES
        self.named_themes = named_themes if named_themes is not None else NAMED_THEMES

    def resolve(self, category, theme_name: Optional[str] = None) -> Theme:
        """Category default, with a recognised named theme merged on top.
        Unknown names silently keep the category default.
        """
        key = category.value if isinstance(category, Category) else str(category or "")
        base = dict(self.category_themes.get(key) or self.category_themes[Category.OTHER.value])

        if theme_name:
            override = self.named_themes.get(theme_name.lower())
            if override:
                base.update(override)
            else:
                logger.debug("Unknown theme %r, using %s defaults", theme_name, key)

        return Theme.model_validate(base)

    def available(self) -> dict:
        labels = {"default": THEME_LABELS["default"]}
        for name in self.named_themes:
            labels[name] = THEME_LABELS.get(name, name.title())
        return labels


theme_resolver = ThemeResolver()
