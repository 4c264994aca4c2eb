"""
llmbridge LLM Registry - Named LLM clients and the provider factory

Usage:
    registry = LLMRegistry.get_instance()
    registry.from_config("config.yaml")

    client = registry.get_default()
    fast = registry.get("fast")

    await registry.close_all()
"""

import logging
import os
import threading
from typing import Any, Dict, List, Optional, Type, Union

from ..config import LLMProviderConfig, load_config, parse_llm_providers
from .anthropic_client import AnthropicClient
from .base import BaseLLMClient, LLMConfig
from .gemini_client import GeminiClient
from .ollama_client import OllamaClient
from .openai_client import (
    AzureOpenAIClient, DeepSeekClient, GroqClient, OpenAIClient, OpenRouterClient, XAIClient
)
from .responses_client import OpenAIResponsesClient

logger = logging.getLogger(__name__)


PROVIDER_CLIENTS: Dict[str, Type[BaseLLMClient]] = {
    "openai": OpenAIClient,
    "openai-responses": OpenAIResponsesClient,
    "azure": AzureOpenAIClient,
    "anthropic": AnthropicClient,
    "google": GeminiClient,
    "gemini": GeminiClient,
    "ollama": OllamaClient,
    "deepseek": DeepSeekClient,
    "groq": GroqClient,
    "xai": XAIClient,
    "openrouter": OpenRouterClient,
}


def create_client(provider: str, config: Union[LLMConfig, LLMProviderConfig], **kwargs) -> BaseLLMClient:
    """
    Create a client for a provider name.

    Args:
        provider: Provider name (see PROVIDER_CLIENTS)
        config: LLMConfig, or a provider entry parsed from YAML
        **kwargs: Passed to the client (e.g. http_transport)

    Raises:
        ValueError: Unknown provider
    """
    client_class = PROVIDER_CLIENTS.get(provider.lower())
    if client_class is None:
        raise ValueError(f"Unknown LLM provider '{provider}'. Available: {sorted(PROVIDER_CLIENTS)}")

    if isinstance(config, LLMProviderConfig):
        llm_config = LLMConfig(
            api_key=config.resolve_api_key(),
            model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
            timeout=int(config.timeout),
            stream_timeout=int(config.stream_timeout),
            default_headers=dict(config.default_headers),
            extra=dict(config.extra),
        )
        if config.max_tokens is not None:
            llm_config.max_tokens = config.max_tokens
        if not llm_config.api_key and client_class.api_key_env:
            llm_config.api_key = os.environ.get(client_class.api_key_env)
        if not llm_config.base_url and client_class is OllamaClient:
            llm_config.base_url = os.environ.get("OLLAMA_HOST") or OllamaClient.default_base_url
        config = llm_config

    return client_class(config, **kwargs)


class LLMRegistry:
    """
    Singleton registry of named LLM clients.

    Example:
        registry = LLMRegistry.get_instance()
        registry.register("main", OpenAIClient(model="gpt-4o"))
        registry.set_default("main")

        client = registry.get_default()
    """

    _instance: Optional["LLMRegistry"] = None
    _lock: threading.Lock = threading.Lock()

    def __init__(self):
        self._clients: Dict[str, BaseLLMClient] = {}
        self._default: Optional[str] = None

    @classmethod
    def get_instance(cls) -> "LLMRegistry":
        """Get singleton instance"""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset registry (for testing)"""
        with cls._lock:
            cls._instance = None

    def register(self, name: str, client: BaseLLMClient) -> None:
        """Register a client under a name (overwrites an existing one)"""
        if name in self._clients:
            logger.warning(f"LLM client '{name}' already registered, overwriting")
        self._clients[name] = client
        if self._default is None:
            self._default = name
        logger.info(f"Registered LLM client: {name} ({client.provider_id}/{client.config.model})")

    def unregister(self, name: str) -> Optional[BaseLLMClient]:
        client = self._clients.pop(name, None)
        if self._default == name:
            self._default = next(iter(self._clients), None)
        return client

    def get(self, name: str) -> Optional[BaseLLMClient]:
        """Get a client by name, None if not registered"""
        return self._clients.get(name)

    def set_default(self, name: str) -> None:
        """
        Set the default client.

        Raises:
            KeyError: No client registered under name
        """
        if name not in self._clients:
            raise KeyError(f"LLM client '{name}' is not registered")
        self._default = name

    def get_default(self) -> Optional[BaseLLMClient]:
        if self._default is None:
            return None
        return self._clients.get(self._default)

    @property
    def default_name(self) -> Optional[str]:
        return self._default

    def list_names(self) -> List[str]:
        return list(self._clients.keys())

    def clear(self) -> None:
        """Forget all clients without closing them"""
        self._clients.clear()
        self._default = None

    def from_config(self, config: Union[str, Dict[str, Any]], **client_kwargs) -> List[str]:
        """
        Register every provider in a YAML file path or an already loaded config dict.

        Returns:
            Names registered, in config order
        """
        data = load_config(config) if isinstance(config, str) else config
        providers, default = parse_llm_providers(data)

        for name, provider_config in providers.items():
            self.register(name, create_client(provider_config.provider, provider_config, **client_kwargs))

        if default:
            self.set_default(default)
        return list(providers.keys())

    async def close_all(self) -> None:
        """Close every registered client and clear the registry"""
        for name, client in list(self._clients.items()):
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Failed to close LLM client '{name}': {e}")
        self.clear()
