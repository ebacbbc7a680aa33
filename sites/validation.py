# sites/validation.py

import re
import math
import uuid
import logging
import phonenumbers
from typing import Optional
from email_validator import validate_email, EmailNotValidError
from phonenumbers.phonenumberutil import NumberParseException

from sites.models import BusinessRecord, Category
from sites.errors import ValidationError
from base.utils.sanitize import sanitize_input

logger = logging.getLogger("umkm.sites.validation")

PHONE_PATTERN = re.compile(r'^(\+62|62|0)8[1-9][0-9]{6,9}$')

# Declared fields in check order: required -> length/pattern/enum -> sanitize
BUSINESS_SCHEMA = {
    "businessName": {"required": True, "min_length": 2, "max_length": 100, "pattern": re.compile(r'^[a-zA-Z0-9\s\-&.()\']+$')},
    "ownerName": {"required": False, "min_length": 2, "max_length": 50, "pattern": re.compile(r'^[a-zA-Z\s.\']+$')},
    "description": {"required": False, "min_length": 10, "max_length": 500},
    "category": {"required": True, "enum": [c.value for c in Category]},
    "phone": {"required": True, "phone": True},
    "email": {"required": False, "email": True},
    "address": {"required": True, "min_length": 10, "max_length": 200},
    "whatsapp": {"required": False, "phone": True},
    "instagram": {"required": False, "max_length": 30, "pattern": re.compile(r'^@?[a-zA-Z0-9._]+$')},
    "logoUrl": {"required": False, "max_length": 500, "pattern": re.compile(r'^https?://\S+$')},
    "theme": {"required": False, "max_length": 30, "pattern": re.compile(r'^[a-zA-Z_-]+$')},
    "customPrompt": {"required": False, "max_length": 500},
}

LEGACY_PRODUCTS_RULES = {"min_length": 5, "max_length": 200}
LEGACY_CATEGORY_NAME = "Menu"
MAX_PRODUCT_CATEGORIES = 20
MAX_ITEMS_PER_CATEGORY = 50


def _strip_phone(value: str) -> str:
    return re.sub(r'[\s\-().]', '', value)


def _check_phone(value: str) -> Optional[str]:
    if not PHONE_PATTERN.match(value):
        return "format is invalid"
    if value.startswith("0"):
        international = "+62" + value[1:]
    elif value.startswith("62"):
        international = "+" + value
    else:
        international = value
    try:
        parsed = phonenumbers.parse(international, "ID")
    except NumberParseException:
        return "format is invalid"
    if not phonenumbers.is_possible_number(parsed):
        return "format is invalid"
    return None


class BusinessValidator:
    """Turns a raw submission map into a sanitized BusinessRecord.

    Every field is checked; all problems are reported together in a single
    ValidationError so the form can show them at once.
    """

    def __init__(self, schema: dict = None):
        self.schema = schema or BUSINESS_SCHEMA

    def normalize(self, raw: dict, business_id: str = None) -> BusinessRecord:
        if not isinstance(raw, dict):
            raise ValidationError({"_": "submission must be an object"})

        errors = {}
        validated = {}

        for field, rules in self.schema.items():
            message, value = self._check_field(field, rules, raw.get(field))
            if message:
                errors[field] = message
            elif value is not None:
                validated[field] = value

        products, products_error = self._normalize_products(raw.get("products"))
        if products_error:
            errors["products"] = products_error
        else:
            validated["products"] = products

        if errors:
            logger.info("Submission rejected, invalid fields: %s", sorted(errors))
            raise ValidationError(errors)

        if validated.get("instagram"):
            validated["instagram"] = validated["instagram"].lstrip("@")
        if validated.get("theme"):
            validated["theme"] = validated["theme"].lower()

        validated["id"] = business_id or str(uuid.uuid4())
        return BusinessRecord.model_validate(validated)

    def _check_field(self, field: str, rules: dict, raw_value):
        if raw_value is not None and not isinstance(raw_value, str):
            if isinstance(raw_value, (int, float)) and not isinstance(raw_value, bool):
                raw_value = str(raw_value)
            else:
                return f"{field} must be text", None

        value = (raw_value or "").strip()

        if not value:
            if rules.get("required"):
                return f"{field} is required", None
            return None, None

        if rules.get("phone"):
            value = _strip_phone(value)
            problem = _check_phone(value)
            if problem:
                return f"{field} {problem}", None
            return None, value

        if rules.get("email"):
            try:
                value = validate_email(value, check_deliverability=False).normalized
            except EmailNotValidError:
                return f"{field} format is invalid", None
            return None, value

        if rules.get("enum"):
            value = value.lower()
            if value not in rules["enum"]:
                return f"{field} must be one of: {', '.join(rules['enum'])}", None
            return None, value

        if rules.get("min_length") and len(value) < rules["min_length"]:
            return f"{field} must be at least {rules['min_length']} characters", None
        if rules.get("max_length") and len(value) > rules["max_length"]:
            return f"{field} must be no more than {rules['max_length']} characters", None
        if rules.get("pattern") and not rules["pattern"].match(value):
            return f"{field} format is invalid", None

        return None, sanitize_input(value)

    def _normalize_products(self, raw):
        """Accepts the legacy comma separated string or the structured list.
        Always returns the structured form.
        """
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None, "products is required"

        if isinstance(raw, str):
            return self._normalize_legacy_products(raw.strip())

        if isinstance(raw, list):
            return self._normalize_structured_products(raw)

        return None, "products must be text or a list of categories"

    def _normalize_legacy_products(self, text: str):
        if len(text) < LEGACY_PRODUCTS_RULES["min_length"]:
            return None, f"products must be at least {LEGACY_PRODUCTS_RULES['min_length']} characters"
        if len(text) > LEGACY_PRODUCTS_RULES["max_length"]:
            return None, f"products must be no more than {LEGACY_PRODUCTS_RULES['max_length']} characters"

        names = [sanitize_input(tok) for tok in text.split(",")]
        items = [{"name": n, "price": 0, "description": ""} for n in names if n]
        if not items:
            return None, "products must list at least one item"
        return [{"categoryName": LEGACY_CATEGORY_NAME, "items": items}], None

    def _normalize_structured_products(self, raw: list):
        if not raw:
            return None, "products must have at least one category"
        if len(raw) > MAX_PRODUCT_CATEGORIES:
            return None, f"products must have no more than {MAX_PRODUCT_CATEGORIES} categories"

        out = []
        for c_idx, cat in enumerate(raw):
            if not isinstance(cat, dict):
                return None, f"products[{c_idx}] must be an object"
            name = cat.get("categoryName")
            if not isinstance(name, str) or not sanitize_input(name):
                return None, f"products[{c_idx}].categoryName is required"

            items = cat.get("items")
            if not isinstance(items, list) or not items:
                return None, f"products[{c_idx}] must have at least one item"
            if len(items) > MAX_ITEMS_PER_CATEGORY:
                return None, f"products[{c_idx}] must have no more than {MAX_ITEMS_PER_CATEGORY} items"

            clean_items = []
            for i_idx, item in enumerate(items):
                where = f"products[{c_idx}].items[{i_idx}]"
                if not isinstance(item, dict):
                    return None, f"{where} must be an object"
                item_name = item.get("name")
                if not isinstance(item_name, str) or not sanitize_input(item_name):
                    return None, f"{where}.name is required"

                price = item.get("price", 0)
                if isinstance(price, str):
                    try:
                        price = float(price) if price.strip() else 0
                    except ValueError:
                        return None, f"{where}.price must be a number"
                if isinstance(price, bool) or not isinstance(price, (int, float)):
                    return None, f"{where}.price must be a number"
                if not math.isfinite(price) or price < 0:
                    return None, f"{where}.price must not be negative"

                description = item.get("description") or ""
                if not isinstance(description, str):
                    description = str(description)

                clean_items.append({
                    "name": sanitize_input(item_name),
                    "price": price,
                    "description": sanitize_input(description),
                })

            out.append({"categoryName": sanitize_input(name), "items": clean_items})
        return out, None


validator = BusinessValidator()


def normalize_business(raw: dict, business_id: str = None) -> BusinessRecord:
    return validator.normalize(raw, business_id=business_id)
