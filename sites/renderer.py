# sites/renderer.py

import re
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional
from urllib.parse import quote, quote_plus
from markupsafe import Markup, escape
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from sites.errors import RenderError
from sites.models import BusinessRecord, Category, SiteArtifact, Theme

logger = logging.getLogger("umkm.sites.renderer")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
UNRESOLVED_TOKEN = re.compile(r'\{\{.*?\}\}', re.DOTALL)

CATEGORY_PAGES = {
    Category.RESTAURANT: {
        "category_display": "Restoran & Kuliner",
        "tagline": "Nikmati hidangan lezat dengan cita rasa terbaik",
        "section_id": "menu",
        "section_title": "Menu Kami",
        "section_subtitle": "Pilihan hidangan favorit pelanggan kami",
        "cta_label": "Lihat Menu",
    },
    Category.RETAIL: {
        "category_display": "Toko & Retail",
        "tagline": "Temukan produk berkualitas dengan harga terbaik",
        "section_id": "products",
        "section_title": "Produk Kami",
        "section_subtitle": "Produk pilihan untuk kebutuhan Anda",
        "cta_label": "Lihat Produk",
    },
    Category.SERVICE: {
        "category_display": "Layanan Profesional",
        "tagline": "Layanan profesional untuk memenuhi kebutuhan Anda",
        "section_id": "services",
        "section_title": "Layanan Kami",
        "section_subtitle": "Berbagai layanan profesional yang kami tawarkan",
        "cta_label": "Lihat Layanan",
    },
    Category.OTHER: {
        "category_display": "Usaha Lokal",
        "tagline": "Melayani Anda dengan sepenuh hati",
        "section_id": "offerings",
        "section_title": "Yang Kami Tawarkan",
        "section_subtitle": "Produk dan layanan kami",
        "cta_label": "Lihat Penawaran",
    },
}


def format_rupiah(amount) -> str:
    """15000 -> 'Rp 15.000'. No decimals, dot as thousands separator."""
    value = int(round(float(amount or 0)))
    return "Rp " + f"{value:,}".replace(",", ".")


def whatsapp_url(number: Optional[str]) -> Optional[str]:
    digits = re.sub(r'\D', '', number or "")
    if not digits:
        return None
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    elif not digits.startswith("62"):
        digits = "62" + digits
    return f"https://wa.me/{digits}"


def maps_url(address: Optional[str]) -> Optional[str]:
    if not address:
        return None
    return f"https://maps.google.com/?q={quote_plus(address)}"


def instagram_url(handle: Optional[str]) -> Optional[str]:
    if not handle:
        return None
    return f"https://instagram.com/{handle.lstrip('@')}"


def _finalize(value):
    # Interpolated values can never reintroduce a template token
    if value is None:
        return ""
    if isinstance(value, Markup):
        return value
    return Markup(str(escape(value)).replace("{", "&#123;").replace("}", "&#125;"))


def find_unresolved_tokens(html: str) -> list:
    return UNRESOLVED_TOKEN.findall(html or "")


class SiteRenderer:
    """Fills a category template with business data and a resolved theme."""

    def __init__(self, templates_dir: Path = None):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
            finalize=_finalize,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["rupiah"] = format_rupiah

    def render(self, category, business: BusinessRecord, theme: Theme) -> SiteArtifact:
        category = Category(category) if not isinstance(category, Category) else category
        try:
            template = self.env.get_template(f"{category.value}.html")
        except TemplateNotFound:
            logger.warning("No template for %s, using 'other'", category.value)
            template = self.env.get_template(f"{Category.OTHER.value}.html")

        try:
            html = template.render(**self.build_context(category, business, theme))
        except Exception as e:
            raise RenderError(f"Failed to render {category.value} template: {e}") from e

        leftovers = find_unresolved_tokens(html)
        if leftovers:
            raise RenderError(f"Unresolved template tokens: {leftovers[:5]}")

        logger.info("Rendered %s site for %s (%d bytes)", category.value, business.id, len(html))
        return SiteArtifact(html=html, business_data=business, generator="template")

    def build_context(self, category: Category, business: BusinessRecord, theme: Theme) -> dict:
        catalog = []
        for group in business.products:
            items = []
            for item in group.items:
                items.append({
                    "name": item.name,
                    "description": item.description,
                    "price_label": format_rupiah(item.price) if item.price > 0 else "",
                    "order_text": quote(f"Halo {business.business_name}, saya ingin memesan {item.name}"),
                })
            catalog.append({"name": group.category_name, "items": items})

        wa_number = business.contact_whatsapp
        page = dict(CATEGORY_PAGES[category])
        page["year"] = datetime.now().year

        return {
            "business": {
                "name": business.business_name,
                "initial": business.business_name[:1].upper(),
                "owner": business.owner_name,
                "description": business.description,
                "phone": business.phone,
                "whatsapp": wa_number,
                "email": business.email,
                "address": business.address,
                "instagram": business.instagram,
                "logo_url": business.logo_url,
            },
            "links": {
                "phone_url": f"tel:{business.phone}",
                "whatsapp_url": whatsapp_url(wa_number),
                "maps_url": maps_url(business.address),
                "instagram_url": instagram_url(business.instagram),
            },
            "theme": theme.model_dump(),
            "catalog": catalog,
            "page": page,
        }


site_renderer = SiteRenderer()
