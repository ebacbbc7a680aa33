# sites/modification.py

import re
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

from sites.errors import ModificationError
from sites.providers import ContentProviderChain
from sites.models import BusinessRecord, SiteArtifact
from sites.renderer import format_rupiah, instagram_url, whatsapp_url

logger = logging.getLogger("umkm.sites.modification")

MAX_FONT_PX = 72
MIN_FONT_PX = 10
MAX_SPACE_PX = 96
MIN_SPACE_PX = 4
FONT_STEP_UP = 4
FONT_STEP_DOWN = 2

NOT_UNDERSTOOD_MESSAGE = (
    "Could not understand this request. Try simpler requests like "
    "\"change color to blue\", \"bigger font\" or \"add contact form\"."
)

_FONT_PX = re.compile(r'font-size:\s*(\d+(?:\.\d+)?)px')
_SPACE_PX = re.compile(r'(padding|margin):\s*(\d+(?:\.\d+)?)px')
_PRIMARY_VAR = re.compile(r'--primary:\s*#[0-9a-fA-F]{3,8}')
_HEAD_CLOSE = re.compile(r'</head>', re.IGNORECASE)
_BODY_CLOSE = re.compile(r'</body>', re.IGNORECASE)

PALETTE = ["#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#06b6d4"]


class ModificationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    artifact: SiteArtifact
    understood: bool
    changed: bool
    method: str
    applied: List[str] = Field(default_factory=list)
    message: str = ""


def _px(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"


def _upsert_style(html: str, key: str, css: str) -> str:
    block = f'<style data-umkm-rule="{key}">\n{css}\n</style>'
    existing = re.compile(rf'<style data-umkm-rule="{re.escape(key)}">.*?</style>', re.DOTALL)
    if existing.search(html):
        return existing.sub(lambda _: block, html, count=1)
    if not _HEAD_CLOSE.search(html):
        raise ModificationError("document has no </head> to attach styles to")
    return _HEAD_CLOSE.sub(lambda _: f"{block}\n</head>", html, count=1)


def _insert_block(html: str, marker_class: str, block: str) -> str:
    if f'class="{marker_class}"' in html:
        return html
    if not _BODY_CLOSE.search(html):
        raise ModificationError("document has no </body> to insert into")
    return _BODY_CLOSE.sub(lambda _: f"{block}\n</body>", html, count=1)


def set_primary_color(color: str):
    def transform(html: str, business: BusinessRecord) -> str:
        if _PRIMARY_VAR.search(html):
            return _PRIMARY_VAR.sub(f"--primary: {color}", html)
        css = (
            f":root {{ --primary: {color}; }}\n"
            f"h1, h2, h3, a {{ color: {color}; }}\n"
            f"button, .btn, .button {{ background-color: {color}; }}"
        )
        return _upsert_style(html, "color", css)
    return transform


def rotate_primary_color(html: str, business: BusinessRecord) -> str:
    match = _PRIMARY_VAR.search(html)
    current = match.group(0).split(":")[1].strip().lower() if match else None
    if current in PALETTE:
        color = PALETTE[(PALETTE.index(current) + 1) % len(PALETTE)]
    else:
        color = PALETTE[0]
    return set_primary_color(color)(html, business)


def scale_fonts_up(html: str, business: BusinessRecord) -> str:
    if not _FONT_PX.search(html):
        return _upsert_style(html, "font-scale", "html, body { font-size: 18px; }")

    def bump(m):
        size = float(m.group(1))
        if size >= MAX_FONT_PX:
            return m.group(0)
        return f"font-size: {_px(min(size + FONT_STEP_UP, MAX_FONT_PX))}px"
    return _FONT_PX.sub(bump, html)


def scale_fonts_down(html: str, business: BusinessRecord) -> str:
    if not _FONT_PX.search(html):
        return _upsert_style(html, "font-scale", "html, body { font-size: 14px; }")

    def shrink(m):
        size = float(m.group(1))
        if size <= MIN_FONT_PX:
            return m.group(0)
        return f"font-size: {_px(max(size - FONT_STEP_DOWN, MIN_FONT_PX))}px"
    return _FONT_PX.sub(shrink, html)


def make_bold(html: str, business: BusinessRecord) -> str:
    html = re.sub(r'font-weight:\s*(normal|400)\b', 'font-weight: bold', html)
    return _upsert_style(html, "bold", "body, p, li { font-weight: 600; }")


def align_text(target: str):
    others = "|".join(a for a in ("left", "center", "right") if a != target)

    def transform(html: str, business: BusinessRecord) -> str:
        return re.sub(rf'text-align:\s*({others})\b', f'text-align: {target}', html)
    return transform


def more_space(html: str, business: BusinessRecord) -> str:
    def grow(m):
        size = float(m.group(2))
        if size >= MAX_SPACE_PX:
            return m.group(0)
        return f"{m.group(1)}: {_px(min(size + 8, MAX_SPACE_PX))}px"
    return _SPACE_PX.sub(grow, html)


def less_space(html: str, business: BusinessRecord) -> str:
    def shrink(m):
        size = float(m.group(2))
        if size <= MIN_SPACE_PX:
            return m.group(0)
        return f"{m.group(1)}: {_px(max(size - 4, MIN_SPACE_PX))}px"
    return _SPACE_PX.sub(shrink, html)


def add_contact_form(html: str, business: BusinessRecord) -> str:
    block = """
    <section class="contact-form" style="background: #f8fafc; padding: 32px; border-radius: 8px; margin: 32px auto; max-width: 640px;">
        <h3 style="color: #1f2937; margin-bottom: 16px;">Hubungi Kami</h3>
        <form style="display: grid; gap: 16px;">
            <input type="text" placeholder="Nama Anda" style="padding: 12px; border: 1px solid #d1d5db; border-radius: 4px;">
            <input type="email" placeholder="Email Anda" style="padding: 12px; border: 1px solid #d1d5db; border-radius: 4px;">
            <textarea placeholder="Pesan Anda" rows="4" style="padding: 12px; border: 1px solid #d1d5db; border-radius: 4px;"></textarea>
            <button type="submit" style="background: #3b82f6; color: #ffffff; padding: 12px; border: none; border-radius: 4px;">Kirim Pesan</button>
        </form>
    </section>"""
    return _insert_block(html, "contact-form", block)


def add_social_links(html: str, business: BusinessRecord) -> str:
    links = []
    wa = whatsapp_url(business.contact_whatsapp)
    if wa:
        links.append(f'<a href="{wa}" style="color: #25d366; text-decoration: none;">WhatsApp</a>')
    ig = instagram_url(business.instagram)
    if ig:
        links.append(f'<a href="{ig}" style="color: #e4405f; text-decoration: none;">Instagram</a>')
    links.append(f'<a href="tel:{business.phone}" style="color: #3b82f6; text-decoration: none;">Telepon</a>')
    block = f"""
    <div class="social-links" style="text-align: center; padding: 16px; background: #f1f5f9;">
        <h4 style="color: #374151; margin-bottom: 16px;">Ikuti Kami</h4>
        <div style="display: flex; justify-content: center; gap: 16px;">{''.join(links)}</div>
    </div>"""
    return _insert_block(html, "social-links", block)


def add_business_hours(html: str, business: BusinessRecord) -> str:
    block = """
    <div class="business-hours" style="background: #fef3c7; padding: 24px; border-radius: 8px; margin: 16px auto; max-width: 640px;">
        <h4 style="color: #92400e; margin-bottom: 8px;">Jam Operasional</h4>
        <p style="color: #92400e; margin: 0;">Senin - Jumat: 08:00 - 17:00</p>
        <p style="color: #92400e; margin: 0;">Sabtu: 08:00 - 15:00</p>
        <p style="color: #92400e; margin: 0;">Minggu: Tutup</p>
    </div>"""
    return _insert_block(html, "business-hours", block)


def add_product_showcase(html: str, business: BusinessRecord) -> str:
    items = [item for group in business.products for item in group.items][:3]
    if not items:
        raise ModificationError("business has no products to showcase")
    cards = []
    for item in items:
        price = f'<p style="font-weight: 700;">{format_rupiah(item.price)}</p>' if item.price > 0 else ""
        cards.append(
            '<div style="background: #ffffff; padding: 16px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1);">'
            f'<h4 style="color: #374151;">{item.name}</h4>{price}</div>'
        )
    block = f"""
    <div class="product-showcase" style="padding: 32px; background: #f8fafc;">
        <h3 style="color: #1f2937; text-align: center; margin-bottom: 32px;">Produk Unggulan</h3>
        <div style="display: grid; grid-template-columns: repeat(auto-fit, minmax(250px, 1fr)); gap: 24px;">{''.join(cards)}</div>
    </div>"""
    return _insert_block(html, "product-showcase", block)


STYLE_PRESETS = {
    "modern": """body { font-family: 'Inter', sans-serif; line-height: 1.6; }
.header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); }
.card { border-radius: 12px; box-shadow: 0 4px 6px rgba(0,0,0,0.1); }
.btn { border-radius: 8px; }""",
    "elegant": """body { font-family: 'Playfair Display', Georgia, serif; line-height: 1.8; color: #2d3748; }
.header { background: #2d3748; border-bottom: 2px solid #e2e8f0; }
.card { border: 1px solid #e2e8f0; border-radius: 0; box-shadow: none; }
.btn { background: #2d3748; border-radius: 0; }""",
    "minimal": """body { font-family: 'Inter', sans-serif; line-height: 1.5; color: #1a202c; background: #fafafa; }
.header { background: #ffffff; color: #1a202c; border-bottom: 1px solid #e2e8f0; }
.card { box-shadow: none; border: 1px solid #eeeeee; }
.btn { background: #1a202c; }""",
}


def apply_preset(name: str):
    def transform(html: str, business: BusinessRecord) -> str:
        # One preset at a time: a later preset replaces the earlier block
        return _upsert_style(html, "preset", f"/* {name} */\n{STYLE_PRESETS[name]}")
    return transform


def normalize_request(text: str) -> str:
    return " " + " ".join(re.sub(r'[^0-9a-zÀ-ɏ]+', ' ', (text or "").lower()).split()) + " "


@dataclass(frozen=True)
class ModificationRule:
    name: str
    keywords: Tuple[str, ...]
    transform: Callable[[str, BusinessRecord], str]
    # skipped when an already matched rule name starts with one of these
    unless: Tuple[str, ...] = ()

    def matches(self, normalized_request: str) -> bool:
        # Whole-word containment: "red" must not fire on "centered"
        return any(f" {kw} " in normalized_request for kw in self.keywords)


RULES: Tuple[ModificationRule, ...] = (
    ModificationRule("color:blue", ("blue", "biru"), set_primary_color("#3b82f6")),
    ModificationRule("color:green", ("green", "hijau"), set_primary_color("#10b981")),
    ModificationRule("color:red", ("red", "merah"), set_primary_color("#ef4444")),
    ModificationRule("color:purple", ("purple", "ungu"), set_primary_color("#8b5cf6")),
    ModificationRule("color:orange", ("orange", "oranye", "jingga"), set_primary_color("#f59e0b")),
    ModificationRule("color:rotate", ("another color", "different color", "other color", "change color", "ganti warna", "warna lain"), rotate_primary_color, unless=("color:",)),
    ModificationRule("font:bigger", ("bigger font", "font bigger", "larger font", "font larger", "bigger text", "increase font", "perbesar", "besar"), scale_fonts_up),
    ModificationRule("font:smaller", ("smaller font", "font smaller", "smaller text", "decrease font", "perkecil", "kecil"), scale_fonts_down),
    ModificationRule("font:bold", ("bold", "tebal"), make_bold),
    ModificationRule("align:center", ("center", "centre", "centered", "tengah"), align_text("center")),
    ModificationRule("align:left", ("left", "kiri"), align_text("left")),
    ModificationRule("align:right", ("right", "kanan"), align_text("right")),
    ModificationRule("space:more", ("more space", "more spacing", "lebih luas", "renggang"), more_space),
    ModificationRule("space:less", ("less space", "less spacing", "compact", "rapat"), less_space),
    ModificationRule("add:contact-form", ("contact form", "form kontak", "formulir kontak"), add_contact_form),
    ModificationRule("add:social-links", ("social links", "social media", "sosial media", "media sosial"), add_social_links),
    ModificationRule("add:business-hours", ("business hours", "opening hours", "jam operasional", "jam buka"), add_business_hours),
    ModificationRule("add:product-showcase", ("product showcase", "produk unggulan"), add_product_showcase),
    ModificationRule("preset:modern", ("modern", "kontemporer"), apply_preset("modern")),
    ModificationRule("preset:elegant", ("elegant", "elegan"), apply_preset("elegant")),
    ModificationRule("preset:minimal", ("minimal", "minimalis"), apply_preset("minimal")),
)

SUGGESTIONS = [
    "Change color to blue/green/red/purple/orange, or try a different color",
    "Make font bigger/smaller",
    "Make text bold",
    "Center/left/right align text",
    "Add more space / less space",
    "Add contact form",
    "Add social media links",
    "Add business hours",
    "Add product showcase",
    "Make it modern/elegant/minimal",
]


class ModificationEngine:
    def __init__(self, chain: Optional[ContentProviderChain] = None, rules: Tuple[ModificationRule, ...] = RULES):
        self.chain = chain
        self.rules = rules

    def apply_rules(self, html: str, request: str, business: BusinessRecord):
        """Applies every matching rule in table order. Returns (html, matched, applied)."""
        normalized = normalize_request(request)
        matched, applied = [], []
        for rule in self.rules:
            if not rule.matches(normalized):
                continue
            if rule.unless and any(name.startswith(rule.unless) for name in matched):
                continue
            matched.append(rule.name)
            try:
                html = rule.transform(html, business)
                applied.append(rule.name)
            except Exception as e:
                logger.warning("Rule %s failed, skipping: %s", rule.name, e)
        return html, matched, applied

    async def modify(self, current: SiteArtifact, request: str, business: BusinessRecord = None) -> ModificationResult:
        business = business or current.business_data
        request = (request or "").strip()
        if not request:
            return ModificationResult(artifact=current, understood=False, changed=False, method="none", message=NOT_UNDERSTOOD_MESSAGE)

        if self.chain is not None:
            try:
                revised = await self.chain.modify(current, request)
            except Exception:
                logger.exception("Provider modification crashed for %s", business.id)
                revised = None
            if revised is not None:
                return ModificationResult(
                    artifact=revised,
                    understood=True,
                    changed=True,
                    method=revised.generator,
                    message="Website modified successfully",
                )

        html, matched, applied = self.apply_rules(current.html, request, business)
        if not matched:
            logger.info("No modification rule matched %r for %s", request, business.id)
            return ModificationResult(artifact=current, understood=False, changed=False, method="none", message=NOT_UNDERSTOOD_MESSAGE)

        if not applied:
            return ModificationResult(
                artifact=current,
                understood=True,
                changed=False,
                method="rules",
                message="The request was understood but could not be applied to this website.",
            )

        changed = html != current.html
        artifact = current.revise(html, generator="rules", request=request) if changed else current
        return ModificationResult(
            artifact=artifact,
            understood=True,
            changed=changed,
            method="rules",
            applied=applied,
            message="Website modified successfully" if changed else "No changes were needed.",
        )

    def suggestions(self) -> List[str]:
        return list(SUGGESTIONS)
