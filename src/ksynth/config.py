"""Configuration management for ksynth."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_VERSION = 2

DEFAULT_CONFIG: dict[str, Any] = {
    "config_version": CONFIG_VERSION,
    "vault_path": "~/.ksynth/vault",
    "output_folder": "Synthesized",
    "excluded_folders": ["06_Meta"],
    "ai": {
        "provider": "openai",
        "api_keys": {},
        "models": {
            "openai": "gpt-4o-mini",
            "claude": "claude-3-5-haiku-latest",
            "gemini": "gemini-2.0-flash",
            "grok": "grok-2-latest",
        },
    },
    "embedding": {
        "provider": "openai",
        "model": "text-embedding-3-small",
        "dimensions": 1536,
        "batch_size": 100,
        "max_chars": 8000,
    },
    "vector_index": {
        "backend": "memory",
        "chroma_path": "~/.ksynth/chroma",
        "snapshot_path": "09_Embedded",
        "embeddings_folder": "embeddings",
        "cache_ttl_seconds": 60,
    },
    "clustering": {"threshold": 0.5, "max_size": 15, "exact_coherence_max_size": 8},
    "suggestions": {
        "sources": ["similarity"],
        "min_cluster_size": 3,
        "min_coherence": {"tag": 0.4, "folder": 0.3, "similarity": 0.5},
        "max_suggestions": 5,
        "seed_count": 5,
    },
    "synthesis": {"include_backlinks": True, "auto_suggest_tags": True, "language": "en"},
}

# provider -> environment variable holding its API key
ENV_API_KEYS = {
    "openai": "OPENAI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "grok": "XAI_API_KEY",
}

_LEGACY_PROVIDERS = {"anthropic": "claude", "openai": "openai"}


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".ksynth" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def migrate_config(old: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a config dict to the current version.

    Pure: the input is never modified. Version 1 configs kept provider
    settings as flat keys (``openai_api_key``, ``anthropic_api_key``,
    ``llm_provider``, ``model``); they move under ``ai``. Values already
    present in the new layout take precedence over legacy ones.
    """
    cfg = copy.deepcopy(old)
    raw_version = cfg.get("config_version", 1)
    try:
        version = int(raw_version)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid config_version: {raw_version!r}") from None
    if version >= CONFIG_VERSION:
        cfg["config_version"] = version
        return cfg

    ai = cfg.setdefault("ai", {})
    api_keys = ai.setdefault("api_keys", {})
    models = ai.setdefault("models", {})

    if (key := cfg.pop("openai_api_key", None)) and not api_keys.get("openai"):
        api_keys["openai"] = key
    if (key := cfg.pop("anthropic_api_key", None)) and not api_keys.get("claude"):
        api_keys["claude"] = key

    legacy_provider = cfg.pop("llm_provider", None)
    if legacy_provider in _LEGACY_PROVIDERS:
        ai["provider"] = _LEGACY_PROVIDERS[legacy_provider]

    if model := cfg.pop("model", None):
        provider = ai.get("provider", DEFAULT_CONFIG["ai"]["provider"])
        models[provider] = model

    cfg["config_version"] = CONFIG_VERSION
    return cfg


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        file_cfg.setdefault("config_version", 1)
        _deep_merge(cfg, migrate_config(file_cfg))

    # Env overrides
    for provider, env_var in ENV_API_KEYS.items():
        if api_key := os.environ.get(env_var):
            cfg["ai"]["api_keys"][provider] = api_key

    # Expand paths
    cfg["vault_path"] = str(Path(cfg["vault_path"]).expanduser().resolve())
    index_cfg = cfg["vector_index"]
    index_cfg["chroma_path"] = str(Path(index_cfg["chroma_path"]).expanduser().resolve())

    return cfg


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
