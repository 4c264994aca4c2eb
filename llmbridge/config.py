"""
llmbridge Config - Load LLM provider configuration from YAML

Example config.yaml:

    llm:
      default: main
      providers:
        main:
          provider: openai
          model: gpt-4o
          api_key: ${OPENAI_API_KEY}
        local:
          provider: ollama
          model: qwen3
          base_url: http://localhost:11434
          extra:
            think: true

Usage:
    from llmbridge.config import load_config, parse_llm_providers

    cfg = load_config("config.yaml")
    providers, default = parse_llm_providers(cfg)
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


@dataclass
class LLMProviderConfig:
    """Configuration for an LLM provider"""
    name: str
    provider: str  # openai, openai-responses, anthropic, google, ollama, deepseek, ...
    model: str
    api_key_env: Optional[str] = None  # Environment variable name for API key
    api_key: Optional[str] = None  # Direct API key (not recommended)
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    timeout: float = 60.0
    stream_timeout: float = 120.0
    default_headers: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


def substitute_env(raw: str, source: str = "<string>") -> str:
    """Replace ${VAR} with environment variable values"""
    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{source}')"
            )
        return value

    return _ENV_PATTERN.sub(_replace_env, raw)


def load_config(path: str) -> Dict[str, Any]:
    """Read YAML config file with ${VAR} environment variable substitution."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    data = yaml.safe_load(substitute_env(raw, path)) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file '{path}' must contain a mapping at the top level")
    logger.info(f"Loaded config from {path}")
    return data


def parse_llm_providers(data: Dict[str, Any]) -> Tuple[Dict[str, LLMProviderConfig], Optional[str]]:
    """
    Parse the llm section of a config dict.

    Returns:
        (providers by name, default provider name)

    Raises:
        ValueError: A provider entry has no model, or default names an unknown provider
    """
    llm_data = data.get("llm") or {}
    providers_data = llm_data.get("providers") or {}

    providers: Dict[str, LLMProviderConfig] = {}
    for name, config in providers_data.items():
        if not config.get("model"):
            raise ValueError(f"LLM config error: provider '{name}' has no model")
        providers[name] = LLMProviderConfig(
            name=name,
            provider=config.get("provider", "openai"),
            model=config["model"],
            api_key_env=config.get("api_key_env"),
            api_key=config.get("api_key"),
            base_url=config.get("base_url"),
            temperature=config.get("temperature", 0.7),
            max_tokens=config.get("max_tokens"),
            timeout=config.get("timeout", 60.0),
            stream_timeout=config.get("stream_timeout", 120.0),
            default_headers=config.get("default_headers") or {},
            extra=config.get("extra") or {},
        )

    default = llm_data.get("default")
    if default and default not in providers:
        raise ValueError(f"LLM config error: default='{default}' not found in providers. "
                         f"Available: {list(providers.keys())}")
    if default is None and providers:
        default = next(iter(providers))

    logger.info(f"Loaded {len(providers)} LLM provider configurations (default={default})")
    return providers, default
