"""
Runtime settings for the extraction pipeline.

All values come from environment variables (a .env file is loaded by main.py).
Feature flags gate the API fetchers and the AI stages.
"""

import os
import logging
from typing import List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "JobGleanBot/1.0 (+https://jobglean.app/bot)"
DEFAULT_PROVIDER_ORDER = "openrouter,anthropic,openai,ollama"

_settings: Optional['Settings'] = None


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[config] Invalid value for {name}: {raw!r}, using {default}")
        return default


class Settings:
    """Environment-backed configuration and feature flags"""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL")
        self.store_type = os.getenv("EXTRACTION_STORE", "postgres" if self.database_url else "memory").lower()

        self.user_agent = os.getenv("SCRAPER_USER_AGENT", DEFAULT_USER_AGENT)
        self.html_fetch_timeout = _env_float("HTML_FETCH_TIMEOUT", 30.0)
        self.api_fetch_timeout = _env_float("API_FETCH_TIMEOUT", 30.0)
        self.ai_extraction_timeout = _env_float("AI_EXTRACTION_TIMEOUT", 120.0)

        # Feature flags
        self.api_population_enabled = _env_flag("API_POPULATION_ENABLED")
        self.greenhouse_enabled = _env_flag("GREENHOUSE_ENABLED")
        self.lever_enabled = _env_flag("LEVER_ENABLED")
        self.ai_extraction_enabled = _env_flag("AI_EXTRACTION_ENABLED")
        self.ai_postprocess_enabled = _env_flag("AI_POSTPROCESS_ENABLED")

        # LLM providers
        self.openrouter_api_key = os.getenv("OPENROUTER_API_KEY")
        self.openrouter_model = os.getenv("OPENROUTER_MODEL", "anthropic/claude-3-haiku")
        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY")
        self.anthropic_model = os.getenv("ANTHROPIC_MODEL", "claude-3-haiku-20240307")
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.openai_model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.ollama_base_url = os.getenv("OLLAMA_BASE_URL")
        self.ollama_model = os.getenv("OLLAMA_MODEL", "llama3.1")
        self.provider_order = [
            p.strip().lower()
            for p in os.getenv("AI_PROVIDER_ORDER", DEFAULT_PROVIDER_ORDER).split(",")
            if p.strip()
        ]

        self.notify_webhook_url = os.getenv("NOTIFY_WEBHOOK_URL")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        if self.store_type == "postgres" and not self.database_url:
            logger.warning("[config] EXTRACTION_STORE=postgres but DATABASE_URL is not set")

        if self.database_url:
            parsed = urlparse(self.database_url)
            logger.info(f"[config] Database configured: {parsed.scheme}://{parsed.hostname}:{parsed.port or 5432}{parsed.path}")

    def is_fetcher_enabled(self, provider: str) -> bool:
        """Check the per-provider API fetcher flag"""
        if provider == "greenhouse":
            return self.greenhouse_enabled
        if provider == "lever":
            return self.lever_enabled
        return False

    def configured_providers(self) -> List[str]:
        """Provider names from AI_PROVIDER_ORDER that have credentials"""
        available = {
            "openrouter": bool(self.openrouter_api_key),
            "anthropic": bool(self.anthropic_api_key),
            "openai": bool(self.openai_api_key),
            "ollama": bool(self.ollama_base_url),
        }
        return [name for name in self.provider_order if available.get(name)]

    def get_status(self) -> dict:
        return {
            "store": self.store_type,
            "api_population": self.api_population_enabled,
            "greenhouse": self.greenhouse_enabled,
            "lever": self.lever_enabled,
            "ai_extraction": self.ai_extraction_enabled,
            "ai_postprocess": self.ai_postprocess_enabled,
            "ai_providers": self.configured_providers(),
        }


def get_settings() -> Settings:
    """Get or create the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Drop the cached settings so the next call re-reads the environment"""
    global _settings
    _settings = None
