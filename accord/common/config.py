"""
Configuration Management for Accord

Loads configuration from ~/.accord/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("accord.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".accord"
CONFIG_PATH = CONFIG_DIR / "config.json"
DEFAULT_STORE_PATH = CONFIG_DIR / "store.json"


@dataclass
class StoreConfig:
    """Document store location"""
    path: str = str(DEFAULT_STORE_PATH)


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    provider: str = "google"  # google, openai, femb (fastembed, on-device)
    model: str = "models/text-embedding-004"
    dimension: int = 768  # checked against every response; 0 disables the check
    api_key: str = ""


@dataclass
class LLMConfig:
    """Narration LLM configuration, shared by ADR, conflict and report writers"""
    provider: str = "google"
    google_api_key: str = ""
    google_model: str = "gemini-2.5-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    @property
    def api_key(self) -> str:
        return getattr(self, f"{self.provider}_api_key", "")

    @property
    def model(self) -> str:
        return getattr(self, f"{self.provider}_model", "")


@dataclass
class AnalysisConfig:
    """Report and search tuning"""
    recent_days: int = 7
    search_threshold: float = 0.3
    search_limit: int = 10
    context_chars: int = 1000


@dataclass
class AccordConfig:
    """Main Accord configuration"""
    store: StoreConfig = field(default_factory=StoreConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_section(section_cls, data: dict):
    """Build a dataclass section from a dict, ignoring unknown keys"""
    known = {name for name in section_cls.__dataclass_fields__}
    return section_cls(**{k: v for k, v in (data or {}).items() if k in known})


def load_config() -> AccordConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.accord/config.json)
    3. Default values
    """
    config = AccordConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.store = _parse_section(StoreConfig, data.get("store"))
            config.embedding = _parse_section(EmbeddingConfig, data.get("embedding"))
            config.llm = _parse_section(LLMConfig, data.get("llm"))
            config.analysis = _parse_section(AnalysisConfig, data.get("analysis"))
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load config file: %s", e)

    if os.getenv("ACCORD_STORE_PATH"):
        config.store.path = os.getenv("ACCORD_STORE_PATH")

    if os.getenv("EMBEDDING_PROVIDER"):
        config.embedding.provider = os.getenv("EMBEDDING_PROVIDER")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("EMBEDDING_DIMENSION"):
        config.embedding.dimension = int(os.getenv("EMBEDDING_DIMENSION"))
    if os.getenv("EMBEDDING_API_KEY"):
        config.embedding.api_key = os.getenv("EMBEDDING_API_KEY")
        config._env_sourced_keys.add("embedding_api_key")

    if os.getenv("ACCORD_RECENT_DAYS"):
        config.analysis.recent_days = int(os.getenv("ACCORD_RECENT_DAYS"))

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "ACCORD_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    # The embedding provider reuses the LLM key for the same vendor when unset
    if not config.embedding.api_key:
        config.embedding.api_key = getattr(config.llm, f"{config.embedding.provider}_api_key", "")
        if f"{config.embedding.provider}_api_key" in config._env_sourced_keys:
            config._env_sourced_keys.add("embedding_api_key")

    return config


def save_config(config: AccordConfig) -> None:
    """Save configuration to file.

    API keys that were sourced from environment variables are written as
    empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
    }
    for key in ("google_api_key", "anthropic_api_key", "openai_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "store": {"path": config.store.path},
        "embedding": {
            "provider": config.embedding.provider,
            "model": config.embedding.model,
            "dimension": config.embedding.dimension,
            "api_key": "" if "embedding_api_key" in env_sourced else config.embedding.api_key,
        },
        "llm": llm_section,
        "analysis": {
            "recent_days": config.analysis.recent_days,
            "search_threshold": config.analysis.search_threshold,
            "search_limit": config.analysis.search_limit,
            "context_chars": config.analysis.context_chars,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
