import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from contractlens_core.models import Language

BUILTIN_PROVIDER = {
    "base_url": "https://api.deepseek.com",
    "chat_model": "deepseek-chat",
    "reasoner_model": "deepseek-reasoner",
}

DEFAULT_CONFIG: dict = {
    "language": Language.CHINESE.value,
    "provider": "deepseek",  # "deepseek" = built-in endpoint and models; "custom" = use the keys below
    "base_url": BUILTIN_PROVIDER["base_url"],
    "chat_model": BUILTIN_PROVIDER["chat_model"],
    "reasoner_model": BUILTIN_PROVIDER["reasoner_model"],
    "temperature": 0.7,
    "request_timeout": 300,
    "max_input_tokens": None,  # None = no limit on document size
    "store": "json",  # json | sqlite | none
    "store_path": None,  # None = default path inside the application directory
}

API_KEY_ENV_VARS = ("CONTRACTLENS_API_KEY", "DEEPSEEK_API_KEY")


@dataclass
class Settings:
    """Provider and UI settings, read by the core on every request."""

    language: Language = Language.CHINESE
    provider: str = "deepseek"
    base_url: str = BUILTIN_PROVIDER["base_url"]
    chat_model: str = BUILTIN_PROVIDER["chat_model"]
    reasoner_model: str = BUILTIN_PROVIDER["reasoner_model"]
    temperature: float = 0.7
    request_timeout: float = 300.0
    max_input_tokens: Optional[int] = None


@dataclass
class Credentials:
    api_key: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.api_key.strip()


def load_config(config_path: str = ".contractlens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .contractlens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path, encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve the API key from the environment; the CLI may fill it from the credentials file later.
    config["api_key"] = next((os.environ[name] for name in API_KEY_ENV_VARS if os.environ.get(name)), None)

    return config


def settings_from_config(config: dict) -> Settings:
    """
    Build Settings from a merged config dict.

    The built-in provider always uses its own endpoint and models; the
    ``base_url`` / ``*_model`` keys only apply when ``provider: custom``.
    """
    provider = config.get("provider") or "deepseek"
    if provider == "custom":
        base_url = config.get("base_url") or BUILTIN_PROVIDER["base_url"]
        chat_model = config.get("chat_model") or BUILTIN_PROVIDER["chat_model"]
        reasoner_model = config.get("reasoner_model") or BUILTIN_PROVIDER["reasoner_model"]
    else:
        base_url = BUILTIN_PROVIDER["base_url"]
        chat_model = BUILTIN_PROVIDER["chat_model"]
        reasoner_model = BUILTIN_PROVIDER["reasoner_model"]

    max_tokens = config.get("max_input_tokens")
    return Settings(
        language=Language.parse(config.get("language")),
        provider=provider,
        base_url=base_url,
        chat_model=chat_model,
        reasoner_model=reasoner_model,
        temperature=float(config.get("temperature", 0.7)),
        request_timeout=float(config.get("request_timeout", 300)),
        max_input_tokens=int(max_tokens) if max_tokens else None,
    )
