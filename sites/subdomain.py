# sites/subdomain.py

import re
import random
import string
import logging

logger = logging.getLogger("umkm.sites.subdomain")

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
MAX_BASE_LENGTH = 20
MIN_BASE_LENGTH = 3
SUFFIX_LENGTH = 4
MAX_ALLOCATION_TRIES = 10


def subdomain_base(business_name: str) -> str:
    base = re.sub(r'[^a-z0-9]', '', (business_name or "").lower())[:MAX_BASE_LENGTH]
    return base.ljust(MIN_BASE_LENGTH, "x")


def generate_subdomain(business_name: str, rng: random.Random = None) -> str:
    rng = rng or random
    suffix = "".join(rng.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{subdomain_base(business_name)}{suffix}"


def suffixed_variants(name: str, count: int):
    """name1, name2, ... nameN"""
    return [f"{name}{i}" for i in range(1, count + 1)]


async def allocate_subdomain(business_name: str, store, rng: random.Random = None) -> str:
    """Generates a subdomain that nobody holds in the reverse index."""
    for _ in range(MAX_ALLOCATION_TRIES):
        candidate = generate_subdomain(business_name, rng)
        if await store.owner_of(candidate) is None:
            return candidate
        logger.info("Subdomain %s already indexed, regenerating", candidate)
    raise RuntimeError(f"could not allocate a free subdomain for {business_name!r}")
