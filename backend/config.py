# backend/config.py

import os
from pathlib import Path
from dotenv import load_dotenv
from dataclasses import dataclass, field

ENV = os.getenv("ENV", "development")
env_path = f"config/.env.{ENV}"

# The real environment (docker-compose, CI) always wins over .env files
if Path(env_path).exists():
    load_dotenv(env_path, override=False)
load_dotenv(override=False)


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _list(name: str, default: str) -> list:
    return [p.strip().lower() for p in (os.getenv(name) or default).split(",") if p.strip()]


@dataclass
class Settings:
    env: str = field(default_factory=lambda: ENV)
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # hosting
    base_domain: str = field(default_factory=lambda: os.getenv("SITE_BASE_DOMAIN", "umkm.id"))
    console_url: str = field(default_factory=lambda: os.getenv("HOSTING_CONSOLE_URL", "https://edgeone.ai/pages/drop"))
    console_domain: str = field(default_factory=lambda: os.getenv("HOSTING_CONSOLE_DOMAIN", "edgeone.app"))
    api_url: str = field(default_factory=lambda: os.getenv("HOSTING_API_URL", "https://api.edgeone.com/v1/pages/deployments"))
    api_token: str = field(default_factory=lambda: os.getenv("HOSTING_API_TOKEN", ""))
    account_id: str = field(default_factory=lambda: os.getenv("HOSTING_ACCOUNT_ID", ""))
    zone_id: str = field(default_factory=lambda: os.getenv("HOSTING_ZONE_ID", ""))
    browser_headless: bool = field(default_factory=lambda: _bool("BROWSER_HEADLESS", True))
    browser_enabled: bool = field(default_factory=lambda: _bool("BROWSER_DEPLOY_ENABLED", True))
    max_conflict_retries: int = field(default_factory=lambda: _int("MAX_CONFLICT_RETRIES", 5))

    # timeouts, seconds
    provider_timeout: float = field(default_factory=lambda: _float("PROVIDER_TIMEOUT", 30.0))
    browser_timeout: float = field(default_factory=lambda: _float("BROWSER_TIMEOUT", 90.0))
    api_timeout: float = field(default_factory=lambda: _float("API_TIMEOUT", 30.0))
    pipeline_timeout: float = field(default_factory=lambda: _float("PIPELINE_TIMEOUT", 300.0))

    # content providers
    provider_order: list = field(default_factory=lambda: _list("PROVIDER_ORDER", "gemini,openai,anthropic"))
    gemini_api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    anthropic_api_key: str = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""))

    # storage
    kv_backend: str = field(default_factory=lambda: os.getenv("KV_BACKEND", "memory").lower())
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", ""))
    artifact_dir: str = field(default_factory=lambda: os.getenv("ARTIFACT_DIR", "/tmp/umkm_sites"))


def get_settings() -> Settings:
    return Settings()
