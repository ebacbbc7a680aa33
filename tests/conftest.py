"""Shared fixtures: sample submissions and an in-memory status store."""

import pytest

from sites.validation import normalize_business
from base.repositories.status_store import MemoryKV, StatusStore


@pytest.fixture
def budi_submission():
    return {
        "businessName": "Warung Pak Budi",
        "category": "restaurant",
        "products": [
            {"categoryName": "Makanan", "items": [{"name": "Nasi Gudeg", "price": 15000}]},
        ],
        "phone": "081234567890",
        "address": "Jl. Malioboro No. 123, Yogyakarta",
    }


@pytest.fixture
def full_submission():
    return {
        "businessName": "Toko Sari Rasa",
        "ownerName": "Sari Wulandari",
        "description": "Toko oleh-oleh khas Yogyakarta sejak 1998",
        "category": "retail",
        "products": [
            {
                "categoryName": "Oleh-oleh",
                "items": [
                    {"name": "Bakpia", "price": 35000, "description": "Isi kacang hijau"},
                    {"name": "Geplak", "price": "20000"},
                ],
            },
            {"categoryName": "Minuman", "items": [{"name": "Wedang Uwuh", "price": 0}]},
        ],
        "phone": "0812-3456-7890",
        "email": "sari@tokosarirasa.co.id",
        "address": "Jl. Kaliurang KM 5, Sleman, Yogyakarta",
        "whatsapp": "081298765432",
        "instagram": "@tokosarirasa",
    }


@pytest.fixture
def budi(budi_submission):
    return normalize_business(budi_submission, business_id="biz-budi")


@pytest.fixture
def store():
    return StatusStore(MemoryKV())
